"""Aggregate maintainer plus per-player queries over participant rows."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from domain.errors import GameStateError, IdempotencyConflict, ReferentialIntegrityError, ValidationError
from domain.stats import (
    HeadToHead,
    ParticipantCounters,
    PlayerTotals,
    fold_participants,
    head_to_head,
    player_deltas,
    player_maxima,
)
from models import Game, GameParticipant, Player
from repositories.common import increment_values, max_values, utcnow
from repositories.game_repository import player_names, require_players

logger = logging.getLogger(__name__)


def claim_aggregation_marker(session: Session, game_id: int) -> None:
    """Atomically set ``aggregated_at``; raises if another call already did."""
    result = session.execute(
        update(Game)
        .where(Game.id == game_id, Game.aggregated_at.is_(None), Game.completed_at.is_not(None))
        .values(aggregated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise IdempotencyConflict("game", game_id)


def apply_game_completion(session: Session, game_id: int) -> list[int]:
    """Add one completed game to its players' lifetime aggregates.

    The marker claim and every counter update run in the caller's
    transaction, so either all of them commit or none do. Returns the player
    ids that were updated.
    """
    game = session.execute(
        select(Game).where(Game.id == game_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if game is None:
        raise ReferentialIntegrityError("game", game_id)
    if game.completed_at is None:
        raise GameStateError(f"Game id={game_id} is not completed")
    if game.aggregated_at is not None:
        raise IdempotencyConflict("game", game_id)

    claim_aggregation_marker(session, game_id)

    participants = session.execute(
        select(GameParticipant)
        .where(GameParticipant.game_id == game_id)
        .order_by(GameParticipant.player_id.asc())
        .execution_options(populate_existing=True)
    ).scalars()

    now = utcnow()
    player_ids: list[int] = []
    for participant in participants:
        counters = ParticipantCounters.from_row(participant)
        values = increment_values(Player, player_deltas(counters, is_winner=participant.is_winner))
        values.update(max_values(Player, player_maxima(counters)))
        values["updated_at"] = now
        result = session.execute(
            update(Player)
            .where(Player.id == participant.player_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ReferentialIntegrityError(
                "player",
                participant.player_id,
                referenced_by=f"game_players id={participant.id}",
            )
        player_ids.append(participant.player_id)

    logger.info("Aggregated game id=%s into players=%s", game_id, player_ids)
    return player_ids


def fetch_player_totals(session: Session, player_ids: Iterable[int] | None = None) -> list[PlayerTotals]:
    """Current lifetime counters, ordered by player id."""
    stmt = select(Player).order_by(Player.id.asc()).execution_options(populate_existing=True)
    if player_ids is not None:
        stmt = stmt.where(Player.id.in_(list(player_ids)))
    return [PlayerTotals.from_row(player) for player in session.execute(stmt).scalars()]


def get_player_totals(session: Session, player_id: int) -> PlayerTotals:
    totals = fetch_player_totals(session, [player_id])
    if not totals:
        raise ReferentialIntegrityError("player", player_id)
    return totals[0]


def recompute_player_counters(
    session: Session,
    player_ids: Iterable[int] | None = None,
    *,
    since: datetime | None = None,
) -> dict[int, dict[str, int]]:
    """Fold participants of aggregated games into lifetime-style counters.

    With ``player_ids`` every requested id gets an entry, empty or not;
    otherwise only players with at least one game appear. ``since`` keeps
    games created at or after that time.
    """
    stmt = (
        select(GameParticipant)
        .join(Game, Game.id == GameParticipant.game_id)
        .where(Game.aggregated_at.is_not(None))
        .order_by(GameParticipant.player_id.asc(), GameParticipant.game_id.asc())
        .execution_options(populate_existing=True)
    )
    wanted: list[int] | None = None
    if player_ids is not None:
        wanted = list(player_ids)
        if not wanted:
            return {}
        stmt = stmt.where(GameParticipant.player_id.in_(wanted))
    if since is not None:
        stmt = stmt.where(Game.created_at >= since)

    games: dict[int, list[tuple[ParticipantCounters, bool]]] = defaultdict(list)
    for participant in session.execute(stmt).scalars():
        games[participant.player_id].append((ParticipantCounters.from_row(participant), participant.is_winner))
    ids = wanted if wanted is not None else sorted(games)
    return {player_id: fold_participants(games[player_id]) for player_id in ids}


def fetch_window_totals(session: Session, since: datetime | None) -> list[PlayerTotals]:
    """Per-player totals over games created since ``since``, ordered by player id."""
    counters = recompute_player_counters(session, since=since)
    names = player_names(session, counters)
    return [
        PlayerTotals(player_id=player_id, name=names[player_id], **counters[player_id])
        for player_id in sorted(counters)
    ]


def _shared_games(session: Session, player_id: int) -> list[tuple[int | None, list[int]]]:
    """(winner_id, participant ids) of every completed game the player sat in."""
    own_games = select(GameParticipant.game_id).where(GameParticipant.player_id == player_id)
    rows = session.execute(
        select(Game.id, Game.winner_id, GameParticipant.player_id)
        .join(GameParticipant, GameParticipant.game_id == Game.id)
        .where(Game.id.in_(own_games), Game.completed_at.is_not(None))
        .order_by(Game.id.asc(), GameParticipant.player_id.asc())
    )
    games: dict[int, tuple[int | None, list[int]]] = {}
    for game_id, winner_id, participant_id in rows:
        games.setdefault(game_id, (winner_id, []))[1].append(participant_id)
    return list(games.values())


def get_head_to_head(session: Session, player_id: int) -> list[HeadToHead]:
    """Records against every opponent, most shared games first."""
    require_players(session, [player_id], referenced_by="head_to_head")
    records = head_to_head(player_id, _shared_games(session, player_id))
    return sorted(records.values(), key=lambda record: (-record.games, record.opponent_id))


def get_head_to_head_record(session: Session, player_id: int, opponent_id: int) -> HeadToHead:
    if player_id == opponent_id:
        raise ValidationError(f"Head-to-head needs two different players, got id={player_id} twice")
    require_players(session, [player_id, opponent_id], referenced_by="head_to_head")
    records = head_to_head(player_id, _shared_games(session, player_id))
    return records.get(opponent_id, HeadToHead(player_id, opponent_id))


__all__ = [
    "apply_game_completion",
    "claim_aggregation_marker",
    "fetch_player_totals",
    "fetch_window_totals",
    "get_head_to_head",
    "get_head_to_head_record",
    "get_player_totals",
    "recompute_player_counters",
]
