"""Materialized recent-games summary: full rebuild, per-game upsert and reads."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, case, delete, func, insert, select
from sqlalchemy.orm import Session

from domain.errors import ValidationError
from models import Game, GameParticipant, Player, RecentGameSummary
from repositories.common import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecentGame:
    game_id: int
    game_type: int
    win_condition: str
    scoring_mode: str
    winner_id: int | None
    winner_name: str | None
    player_count: int
    total_darts: int
    total_turns: int
    players_with_180s: int
    duration_minutes: float
    created_at: datetime
    completed_at: datetime


@dataclass(frozen=True)
class RecentGamesPage:
    rows: tuple[RecentGame, ...]
    refreshed_at: datetime | None
    pending_games: int


def _summary_stmt() -> Select:
    """Per completed game: participant count and summed participant counters."""
    return (
        select(
            Game.id.label("game_id"),
            Game.game_type,
            Game.win_condition,
            Game.scoring_mode,
            Game.winner_id,
            Game.created_at,
            Game.completed_at,
            func.count(GameParticipant.id).label("player_count"),
            func.coalesce(func.sum(GameParticipant.total_darts), 0).label("total_darts"),
            func.coalesce(func.sum(GameParticipant.total_turns), 0).label("total_turns"),
            func.coalesce(
                func.sum(case((GameParticipant.count_180s > 0, 1), else_=0)), 0
            ).label("players_with_180s"),
        )
        .select_from(Game)
        .outerjoin(GameParticipant, GameParticipant.game_id == Game.id)
        .where(Game.completed_at.is_not(None))
        .group_by(Game.id)
    )


def _summary_values(row: Any, refreshed_at: datetime) -> dict[str, Any]:
    duration = (row.completed_at - row.created_at).total_seconds() / 60.0
    return {
        "game_id": row.game_id,
        "game_type": row.game_type,
        "win_condition": row.win_condition,
        "scoring_mode": row.scoring_mode,
        "winner_id": row.winner_id,
        "player_count": int(row.player_count),
        "total_darts": int(row.total_darts),
        "total_turns": int(row.total_turns),
        "players_with_180s": int(row.players_with_180s),
        "duration_minutes": max(duration, 0.0),
        "created_at": row.created_at,
        "completed_at": row.completed_at,
        "refreshed_at": refreshed_at,
    }


def refresh_recent_games(session: Session, *, now: datetime | None = None) -> int:
    """Rebuild the summary from every completed game. Returns the row count."""
    refreshed_at = now or utcnow()
    values = [_summary_values(row, refreshed_at) for row in session.execute(_summary_stmt())]
    session.execute(delete(RecentGameSummary))
    if values:
        session.execute(insert(RecentGameSummary), values)
    logger.info("Refreshed recent games summary rows=%s", len(values))
    return len(values)


def refresh_recent_game(session: Session, game_id: int, *, now: datetime | None = None) -> bool:
    """Upsert the summary row of one game; False when the game is not completed."""
    row = session.execute(_summary_stmt().where(Game.id == game_id)).one_or_none()
    if row is None:
        return False
    session.execute(delete(RecentGameSummary).where(RecentGameSummary.game_id == game_id))
    session.execute(insert(RecentGameSummary), [_summary_values(row, now or utcnow())])
    return True


def get_recent_games(session: Session, *, limit: int = 20) -> RecentGamesPage:
    """Newest games first, plus how many completed games the summary is missing."""
    if limit < 1:
        raise ValidationError(f"limit must be >= 1, got {limit}")

    stmt = (
        select(RecentGameSummary, Player.name)
        .outerjoin(Player, Player.id == RecentGameSummary.winner_id)
        .order_by(RecentGameSummary.created_at.desc(), RecentGameSummary.game_id.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    rows = tuple(
        RecentGame(
            game_id=summary.game_id,
            game_type=summary.game_type,
            win_condition=summary.win_condition,
            scoring_mode=summary.scoring_mode,
            winner_id=summary.winner_id,
            winner_name=winner_name,
            player_count=summary.player_count,
            total_darts=summary.total_darts,
            total_turns=summary.total_turns,
            players_with_180s=summary.players_with_180s,
            duration_minutes=round(summary.duration_minutes, 2),
            created_at=summary.created_at,
            completed_at=summary.completed_at,
        )
        for summary, winner_name in session.execute(stmt)
    )

    refreshed_at = session.execute(select(func.min(RecentGameSummary.refreshed_at))).scalar_one()
    pending_games = session.execute(
        select(func.count(Game.id))
        .outerjoin(RecentGameSummary, RecentGameSummary.game_id == Game.id)
        .where(Game.completed_at.is_not(None), RecentGameSummary.game_id.is_(None))
    ).scalar_one()
    return RecentGamesPage(rows=rows, refreshed_at=refreshed_at, pending_games=int(pending_games))


__all__ = [
    "RecentGame",
    "RecentGamesPage",
    "get_recent_games",
    "refresh_recent_game",
    "refresh_recent_games",
]
