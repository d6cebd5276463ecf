"""Bracket engine persistence: tournament creation and match progression.

Every state change is a conditional UPDATE on the exact row and status (or
slot) it expects, so two siblings finishing at the same time cannot both
fill one slot and a result cannot be applied twice.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from domain.bracket import (
    TournamentFormat,
    build_bracket,
    elimination_stage,
    final_placements,
    seed_order,
)
from domain.config import TournamentConfig
from domain.errors import MatchStateError, ReferentialIntegrityError, TopologyError, ValidationError
from models import Game, Tournament, TournamentMatch, TournamentParticipant
from repositories.common import utcnow
from repositories.game_repository import require_players

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("ready", "in_progress")


@dataclass(frozen=True)
class MatchResult:
    """Outcome of reporting one match result."""

    match_id: int
    winner_id: int | None
    loser_id: int | None
    applied: bool
    tournament_completed: bool


@dataclass(frozen=True)
class TournamentBracket:
    tournament: Tournament
    participants: tuple[TournamentParticipant, ...]
    rounds: dict[int, tuple[TournamentMatch, ...]]

    def match(self, round_number: int, match_number: int) -> TournamentMatch:
        for match in self.rounds.get(round_number, ()):
            if match.match_number == match_number:
                return match
        raise KeyError((round_number, match_number))


def _round_order(round_number: int, total_rounds: int) -> tuple[int, int]:
    # winners bracket, then losers bracket, then the grand final
    if round_number < 0:
        return (1, -round_number)
    if round_number > total_rounds:
        return (2, round_number)
    return (0, round_number)


def _load_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.execute(
        select(Tournament)
        .where(Tournament.id == tournament_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if tournament is None:
        raise ReferentialIntegrityError("tournament", tournament_id)
    return tournament


def get_match(session: Session, match_id: int) -> TournamentMatch:
    match = session.execute(
        select(TournamentMatch)
        .where(TournamentMatch.id == match_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if match is None:
        raise ReferentialIntegrityError("tournament_match", match_id)
    return match


def _transition(
    session: Session,
    match_id: int,
    from_statuses: Sequence[str],
    **values: Any,
) -> bool:
    result = session.execute(
        update(TournamentMatch)
        .where(TournamentMatch.id == match_id, TournamentMatch.status.in_(from_statuses))
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def create_tournament(
    session: Session,
    config: TournamentConfig,
    seeded_player_ids: Sequence[int],
) -> TournamentBracket:
    """Create the tournament, its whole match graph and resolve first-round byes.

    Players are seeded in the order given. The topology is validated before
    any row is written.
    """
    if len(set(seeded_player_ids)) != len(seeded_player_ids):
        raise TopologyError("A player cannot be seeded twice in one tournament")
    plan = build_bracket(config.format, config.bracket_size, len(seeded_player_ids))
    require_players(session, seeded_player_ids, referenced_by="tournament_participants")

    tournament = Tournament(
        name=config.name,
        status="in_progress",
        format=config.format.value,
        bracket_size=plan.bracket_size,
        total_rounds=plan.total_rounds,
        game_type=config.game_type,
        win_condition=config.win_condition,
        scoring_mode=config.scoring_mode,
    )
    session.add(tournament)
    session.flush()

    positions = {seed: index for index, seed in enumerate(seed_order(plan.bracket_size), start=1)}
    player_by_seed = {seed: player_id for seed, player_id in enumerate(seeded_player_ids, start=1)}
    session.add_all(
        TournamentParticipant(
            tournament_id=tournament.id,
            player_id=player_id,
            seed=seed,
            bracket_position=positions[seed],
        )
        for seed, player_id in player_by_seed.items()
    )

    rows: dict[tuple[int, int], TournamentMatch] = {}
    for spec in plan.matches:
        rows[spec.key] = TournamentMatch(
            tournament_id=tournament.id,
            round=spec.round,
            match_number=spec.match_number,
            player1_id=player_by_seed.get(spec.player1_seed),
            player2_id=player_by_seed.get(spec.player2_seed),
            player1_bye=spec.player1_bye,
            player2_bye=spec.player2_bye,
            status="pending",
            winner_next_slot=spec.winner_next_slot,
            loser_next_slot=spec.loser_next_slot,
        )
    session.add_all(rows.values())
    session.flush()

    for spec in plan.matches:
        row = rows[spec.key]
        if spec.winner_next is not None:
            row.winner_next_match_id = rows[spec.winner_next].id
        if spec.loser_next is not None:
            row.loser_next_match_id = rows[spec.loser_next].id
    session.flush()

    ordered = sorted(
        plan.matches,
        key=lambda spec: (_round_order(spec.round, plan.total_rounds), spec.match_number),
    )
    for spec in ordered:
        _settle(session, rows[spec.key].id)

    logger.info(
        "Created tournament id=%s format=%s size=%s players=%s",
        tournament.id,
        config.format.value,
        plan.bracket_size,
        len(seeded_player_ids),
    )
    return get_bracket(session, tournament.id)


def _settle(session: Session, match_id: int) -> None:
    """Move a pending match forward once its slots are resolved.

    Two byes complete it empty, two players make it ready and one player
    facing a bye wins it by walkover.
    """
    match = get_match(session, match_id)
    if match.status != "pending":
        return

    if match.player1_bye and match.player2_bye:
        _transition(session, match.id, ("pending",), status="completed")
        return
    if match.player1_id is not None and match.player2_id is not None:
        _transition(session, match.id, ("pending",), status="ready")
        return

    walkover_id = None
    if match.player1_id is not None and match.player2_bye:
        walkover_id = match.player1_id
    elif match.player2_id is not None and match.player1_bye:
        walkover_id = match.player2_id
    if walkover_id is None:
        return

    if _transition(session, match.id, ("pending",), status="completed", winner_id=walkover_id):
        logger.info("Match id=%s walkover for player id=%s", match.id, walkover_id)
        _advance(session, match, walkover_id, None)


def _place(session: Session, match_id: int, slot: int | None, player_id: int) -> None:
    """Fill the exact slot of a target match; it must still be empty."""
    if slot == 1:
        player_column, bye_column, field = TournamentMatch.player1_id, TournamentMatch.player1_bye, "player1_id"
    elif slot == 2:
        player_column, bye_column, field = TournamentMatch.player2_id, TournamentMatch.player2_bye, "player2_id"
    else:
        raise TopologyError(f"Invalid slot {slot!r} for match id={match_id}")

    result = session.execute(
        update(TournamentMatch)
        .where(
            TournamentMatch.id == match_id,
            TournamentMatch.status == "pending",
            player_column.is_(None),
            bye_column.is_(False),
        )
        .values({field: player_id, "updated_at": utcnow()})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise MatchStateError(f"Slot {slot} of match id={match_id} is not open")
    _settle(session, match_id)


def _eliminate(session: Session, tournament_id: int, player_id: int, round_number: int) -> None:
    session.execute(
        update(TournamentParticipant)
        .where(
            TournamentParticipant.tournament_id == tournament_id,
            TournamentParticipant.player_id == player_id,
            TournamentParticipant.eliminated.is_(False),
        )
        .values(eliminated=True, eliminated_in_round=round_number)
        .execution_options(synchronize_session=False)
    )
    logger.info(
        "Player id=%s eliminated from tournament id=%s in round %s",
        player_id,
        tournament_id,
        round_number,
    )


def _advance(
    session: Session,
    match: TournamentMatch,
    winner_id: int,
    loser_id: int | None,
) -> bool:
    """Route winner and loser; returns True when this completed the tournament."""
    if loser_id is not None:
        if match.loser_next_match_id is not None:
            _place(session, match.loser_next_match_id, match.loser_next_slot, loser_id)
        else:
            _eliminate(session, match.tournament_id, loser_id, match.round)

    if match.winner_next_match_id is not None:
        _place(session, match.winner_next_match_id, match.winner_next_slot, winner_id)
        return False
    return _complete_tournament(session, match.tournament_id, winner_id)


def _complete_tournament(session: Session, tournament_id: int, champion_id: int) -> bool:
    result = session.execute(
        update(Tournament)
        .where(Tournament.id == tournament_id, Tournament.status == "in_progress")
        .values(status="completed", winner_id=champion_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    tournament = _load_tournament(session, tournament_id)
    tournament_format = TournamentFormat(tournament.format)
    participants = session.execute(
        select(TournamentParticipant)
        .where(TournamentParticipant.tournament_id == tournament_id)
        .execution_options(populate_existing=True)
    ).scalars().all()
    stages = {
        participant.player_id: elimination_stage(
            tournament_format,
            tournament.total_rounds,
            participant.eliminated_in_round,
        )
        for participant in participants
        if participant.eliminated_in_round is not None
    }
    placements = final_placements(champion_id, stages)
    for participant in participants:
        participant.final_placement = placements.get(participant.player_id)
    session.flush()
    logger.info("Tournament id=%s completed champion=%s", tournament_id, champion_id)
    return True


def start_match(session: Session, match_id: int, game_id: int) -> TournamentMatch:
    """``ready -> in_progress`` and link the game being played."""
    if session.get(Game, game_id) is None:
        raise ReferentialIntegrityError("game", game_id, referenced_by="tournament_matches")
    if not _transition(session, match_id, ("ready",), status="in_progress", game_id=game_id):
        match = get_match(session, match_id)
        if match.status == "in_progress" and match.game_id == game_id:
            return match
        raise MatchStateError(f"Match id={match_id} cannot start from status {match.status!r}")
    return get_match(session, match_id)


def report_match_result(session: Session, match_id: int, winner_id: int) -> MatchResult:
    """Complete a match and propagate winner/loser through the bracket.

    Reporting the same winner again is a no-op; a different winner for a
    completed match is a ``MatchStateError``.
    """
    match = get_match(session, match_id)
    if match.status == "completed":
        return _already_reported(match, winner_id)
    if match.status == "pending":
        raise MatchStateError(f"Match id={match_id} is still waiting for its players")
    if winner_id not in (match.player1_id, match.player2_id):
        raise ValidationError(f"Player id={winner_id} is not playing match id={match_id}")

    loser_id = match.player2_id if winner_id == match.player1_id else match.player1_id
    if not _transition(session, match_id, ACTIVE_STATUSES, status="completed", winner_id=winner_id):
        return _already_reported(get_match(session, match_id), winner_id)

    logger.info("Match id=%s completed winner=%s loser=%s", match_id, winner_id, loser_id)
    completed = _advance(session, match, winner_id, loser_id)
    return MatchResult(
        match_id=match_id,
        winner_id=winner_id,
        loser_id=loser_id,
        applied=True,
        tournament_completed=completed,
    )


def _already_reported(match: TournamentMatch, winner_id: int) -> MatchResult:
    if match.winner_id != winner_id:
        raise MatchStateError(
            f"Match id={match.id} already completed with winner_id={match.winner_id}"
        )
    logger.warning("Match id=%s result already reported; ignoring", match.id)
    return MatchResult(
        match_id=match.id,
        winner_id=winner_id,
        loser_id=None,
        applied=False,
        tournament_completed=False,
    )


def find_match_for_game(session: Session, game_id: int) -> TournamentMatch | None:
    return session.execute(
        select(TournamentMatch)
        .where(TournamentMatch.game_id == game_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def get_bracket(session: Session, tournament_id: int) -> TournamentBracket:
    """All matches grouped by round: winners, losers, then the grand final."""
    tournament = _load_tournament(session, tournament_id)
    participants = session.execute(
        select(TournamentParticipant)
        .where(TournamentParticipant.tournament_id == tournament_id)
        .order_by(TournamentParticipant.seed.asc())
        .execution_options(populate_existing=True)
    ).scalars().all()
    matches = session.execute(
        select(TournamentMatch)
        .where(TournamentMatch.tournament_id == tournament_id)
        .execution_options(populate_existing=True)
    ).scalars().all()

    rounds: dict[int, list[TournamentMatch]] = {}
    for match in sorted(
        matches,
        key=lambda item: (_round_order(item.round, tournament.total_rounds), item.match_number),
    ):
        rounds.setdefault(match.round, []).append(match)
    return TournamentBracket(
        tournament=tournament,
        participants=tuple(participants),
        rounds={round_number: tuple(items) for round_number, items in rounds.items()},
    )


__all__ = [
    "MatchResult",
    "TournamentBracket",
    "create_tournament",
    "find_match_for_game",
    "get_bracket",
    "get_match",
    "report_match_result",
    "start_match",
]
