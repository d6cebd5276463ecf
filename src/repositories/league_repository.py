"""League engine persistence: fixtures, results and standings."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from domain.config import LeagueConfig
from domain.errors import MatchStateError, ReferentialIntegrityError, ValidationError
from domain.league import (
    FixtureResult,
    PointsSystem,
    RankedStanding,
    StandingRow,
    generate_fixtures,
    rank_standings,
    result_deltas,
)
from models import Game, League, LeagueMatch, LeagueParticipant
from repositories.common import increment_values, utcnow
from repositories.game_repository import require_players

logger = logging.getLogger(__name__)

STANDING_FIELDS = ("matches_played", "wins", "draws", "losses", "points", "legs_won", "legs_lost")


@dataclass(frozen=True)
class LeagueMatchResult:
    match_id: int
    winner_id: int | None
    is_draw: bool
    applied: bool
    league_completed: bool


def _load_league(session: Session, league_id: int) -> League:
    league = session.execute(
        select(League).where(League.id == league_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if league is None:
        raise ReferentialIntegrityError("league", league_id)
    return league


def get_match(session: Session, match_id: int) -> LeagueMatch:
    match = session.execute(
        select(LeagueMatch).where(LeagueMatch.id == match_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if match is None:
        raise ReferentialIntegrityError("league_match", match_id)
    return match


def points_system(league: League) -> PointsSystem:
    return PointsSystem(
        points_for_win=league.points_for_win,
        points_for_draw=league.points_for_draw,
        points_for_loss=league.points_for_loss,
    )


def create_league(session: Session, config: LeagueConfig, player_ids: Sequence[int]) -> League:
    """Persist the league, one standings row per player and every fixture."""
    fixtures = generate_fixtures(player_ids, config.matches_per_pairing)
    require_players(session, player_ids, referenced_by="league_participants")

    league = League(
        name=config.name,
        status="in_progress",
        game_type=config.game_type,
        win_condition=config.win_condition,
        scoring_mode=config.scoring_mode,
        matches_per_pairing=config.matches_per_pairing,
        points_for_win=config.points.points_for_win,
        points_for_draw=config.points.points_for_draw,
        points_for_loss=config.points.points_for_loss,
    )
    session.add(league)
    session.flush()

    session.add_all(LeagueParticipant(league_id=league.id, player_id=player_id) for player_id in player_ids)
    session.add_all(
        LeagueMatch(
            league_id=league.id,
            player1_id=fixture.player1_id,
            player2_id=fixture.player2_id,
            fixture_round=fixture.fixture_round,
            pass_number=fixture.pass_number,
            status="pending",
        )
        for fixture in fixtures
    )
    session.flush()
    logger.info(
        "Created league id=%s players=%s fixtures=%s",
        league.id,
        len(player_ids),
        len(fixtures),
    )
    return league


def start_league_match(session: Session, match_id: int, game_id: int) -> LeagueMatch:
    """``pending -> in_progress`` and link the game being played."""
    if session.get(Game, game_id) is None:
        raise ReferentialIntegrityError("game", game_id, referenced_by="league_matches")
    result = session.execute(
        update(LeagueMatch)
        .where(LeagueMatch.id == match_id, LeagueMatch.status == "pending")
        .values(status="in_progress", game_id=game_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    match = get_match(session, match_id)
    if result.rowcount == 0 and not (match.status == "in_progress" and match.game_id == game_id):
        raise MatchStateError(f"League match id={match_id} cannot start from status {match.status!r}")
    return match


def report_league_result(
    session: Session,
    match_id: int,
    *,
    winner_id: int | None = None,
    is_draw: bool = False,
    player1_legs: int | None = None,
    player2_legs: int | None = None,
) -> LeagueMatchResult:
    """Complete one fixture and fold it into both players' standings.

    Legs default to 1-0 for a win and 0-0 for a draw. Reporting the same
    result again is a no-op.
    """
    match = get_match(session, match_id)
    if is_draw and winner_id is not None:
        raise ValidationError("A drawn fixture cannot have a winner")
    if not is_draw and winner_id is None:
        raise ValidationError("A fixture needs a winner or is_draw=True")
    if winner_id is not None and winner_id not in (match.player1_id, match.player2_id):
        raise ValidationError(f"Player id={winner_id} is not playing league match id={match_id}")

    if player1_legs is None or player2_legs is None:
        player1_legs = 1 if winner_id == match.player1_id else 0
        player2_legs = 1 if winner_id == match.player2_id else 0
    if player1_legs < 0 or player2_legs < 0:
        raise ValidationError("Leg counts must be >= 0")
    if is_draw and player1_legs != player2_legs:
        raise ValidationError("A drawn fixture must have equal legs")
    if winner_id == match.player1_id and player1_legs <= player2_legs:
        raise ValidationError("The winner must have won more legs")
    if winner_id == match.player2_id and player2_legs <= player1_legs:
        raise ValidationError("The winner must have won more legs")

    result = session.execute(
        update(LeagueMatch)
        .where(LeagueMatch.id == match_id, LeagueMatch.status != "completed")
        .values(
            status="completed",
            winner_id=winner_id,
            is_draw=is_draw,
            player1_legs=player1_legs,
            player2_legs=player2_legs,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        match = get_match(session, match_id)
        if match.winner_id != winner_id or match.is_draw != is_draw:
            raise MatchStateError(
                f"League match id={match_id} already completed with a different result"
            )
        logger.warning("League match id=%s result already reported; ignoring", match_id)
        return LeagueMatchResult(match_id, winner_id, is_draw, applied=False, league_completed=False)

    apply_match_result(session, match_id)
    completed = _complete_league_if_done(session, match.league_id)
    logger.info("League match id=%s completed winner=%s draw=%s", match_id, winner_id, is_draw)
    return LeagueMatchResult(match_id, winner_id, is_draw, applied=True, league_completed=completed)


def apply_match_result(session: Session, match_id: int) -> None:
    """Relative standings increments for both sides of a completed fixture."""
    match = get_match(session, match_id)
    if match.status != "completed":
        raise MatchStateError(f"League match id={match_id} is not completed")
    league = _load_league(session, match.league_id)

    deltas = result_deltas(_fixture_result(match), points_system(league))
    now = utcnow()
    for player_id in sorted(deltas):
        result = session.execute(
            update(LeagueParticipant)
            .where(LeagueParticipant.league_id == league.id, LeagueParticipant.player_id == player_id)
            .values(updated_at=now, **increment_values(LeagueParticipant, deltas[player_id]))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ReferentialIntegrityError(
                "league_participant",
                player_id,
                referenced_by=f"league_matches id={match_id}",
            )


def _fixture_result(match: LeagueMatch) -> FixtureResult:
    return FixtureResult(
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        winner_id=None if match.is_draw else match.winner_id,
        player1_legs=match.player1_legs,
        player2_legs=match.player2_legs,
    )


def _complete_league_if_done(session: Session, league_id: int) -> bool:
    open_matches = session.execute(
        select(func.count(LeagueMatch.id)).where(
            LeagueMatch.league_id == league_id,
            LeagueMatch.status != "completed",
        )
    ).scalar_one()
    if open_matches:
        return False

    standings = get_standings(session, league_id)
    winner_id = standings[0].row.player_id if standings else None
    result = session.execute(
        update(League)
        .where(League.id == league_id, League.status == "in_progress")
        .values(status="completed", winner_id=winner_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        logger.info("League id=%s completed winner=%s", league_id, winner_id)
        return True
    return False


def find_match_for_game(session: Session, game_id: int) -> LeagueMatch | None:
    return session.execute(
        select(LeagueMatch)
        .where(LeagueMatch.game_id == game_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def fetch_standing_rows(session: Session, league_id: int) -> list[StandingRow]:
    participants = session.execute(
        select(LeagueParticipant)
        .where(LeagueParticipant.league_id == league_id)
        .execution_options(populate_existing=True)
    ).scalars()
    return [
        StandingRow(
            player_id=participant.player_id,
            **{field: getattr(participant, field) for field in STANDING_FIELDS},
        )
        for participant in participants
    ]


def fetch_results(session: Session, league_id: int) -> list[FixtureResult]:
    matches = session.execute(
        select(LeagueMatch)
        .where(LeagueMatch.league_id == league_id, LeagueMatch.status == "completed")
        .order_by(LeagueMatch.id.asc())
        .execution_options(populate_existing=True)
    ).scalars()
    return [_fixture_result(match) for match in matches]


def get_standings(session: Session, league_id: int) -> list[RankedStanding]:
    """Standings ranked by points, leg difference, head-to-head, legs won, id."""
    league = _load_league(session, league_id)
    return rank_standings(
        fetch_standing_rows(session, league_id),
        fetch_results(session, league_id),
        points_system(league),
    )


__all__ = [
    "LeagueMatchResult",
    "STANDING_FIELDS",
    "apply_match_result",
    "create_league",
    "fetch_results",
    "fetch_standing_rows",
    "find_match_for_game",
    "get_match",
    "get_standings",
    "points_system",
    "report_league_result",
    "start_league_match",
]
