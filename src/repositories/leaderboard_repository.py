"""Materialized leaderboard: full rebuild, per-player splice and paged reads.

Time-windowed pages are ranked on the fly from participant rows.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, func, insert, or_, select
from sqlalchemy.orm import Session

from domain.errors import ReferentialIntegrityError, ValidationError
from domain.leaderboard import Dimension, RankedRow, SortKey, TimeWindow, rank_players, splice_player
from domain.stats import display_value
from models import LeaderboardEntry, Player
from repositories.common import utcnow
from repositories.stats_repository import fetch_player_totals, fetch_window_totals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardRow:
    rank: int
    player_id: int
    player_name: str
    primary_value: float
    tiebreak_value: float
    secondary_tiebreak_value: float | None


@dataclass(frozen=True)
class LeaderboardPage:
    """One page of a dimension plus how fresh the projection is."""

    dimension: Dimension
    page: int
    page_size: int
    total_entries: int
    rows: tuple[LeaderboardRow, ...]
    refreshed_at: datetime | None
    pending_players: int
    is_stale: bool
    window: TimeWindow = TimeWindow.ALL_TIME


def _entry_values(row: RankedRow, refreshed_at: datetime) -> dict[str, Any]:
    return {
        "dimension": row.dimension.value,
        "rank": row.rank,
        "player_id": row.player_id,
        "primary_value": row.key.primary,
        "tiebreak_value": row.key.tiebreak,
        "secondary_tiebreak_value": row.key.secondary_tiebreak,
        "refreshed_at": refreshed_at,
    }


def _stored_rows(session: Session, dimension: Dimension) -> tuple[list[RankedRow], dict[int, datetime]]:
    """Stored rows in rank order plus each player's row refresh time."""
    entries = session.execute(
        select(LeaderboardEntry)
        .where(LeaderboardEntry.dimension == dimension.value)
        .order_by(LeaderboardEntry.rank.asc())
        .execution_options(populate_existing=True)
    ).scalars().all()
    rows = [
        RankedRow(
            dimension=dimension,
            rank=entry.rank,
            player_id=entry.player_id,
            key=SortKey(
                primary=entry.primary_value,
                tiebreak=entry.tiebreak_value,
                secondary_tiebreak=entry.secondary_tiebreak_value,
            ),
        )
        for entry in entries
    ]
    return rows, {entry.player_id: entry.refreshed_at for entry in entries}


def refresh_leaderboard(
    session: Session,
    dimensions: Iterable[Dimension] | None = None,
    *,
    now: datetime | None = None,
) -> dict[Dimension, int]:
    """Rebuild the given dimensions (all by default) from current player counters."""
    refreshed_at = now or utcnow()
    selected = list(dimensions) if dimensions is not None else list(Dimension)
    totals = fetch_player_totals(session)

    counts: dict[Dimension, int] = {}
    for dimension in selected:
        ranked = rank_players(dimension, totals)
        session.execute(delete(LeaderboardEntry).where(LeaderboardEntry.dimension == dimension.value))
        if ranked:
            session.execute(insert(LeaderboardEntry), [_entry_values(row, refreshed_at) for row in ranked])
        counts[dimension] = len(ranked)

    logger.info("Refreshed leaderboard dimensions=%s", {key.value: value for key, value in counts.items()})
    return counts


def refresh_player(
    session: Session,
    player_id: int,
    *,
    now: datetime | None = None,
) -> dict[Dimension, tuple[int, int]]:
    """Re-rank one player in every dimension, rewriting only the moved window.

    Returns the inclusive ``(low, high)`` rank window rewritten per dimension;
    ``(0, -1)`` means nothing changed. Only the re-ranked player's row gets a
    new ``refreshed_at``; rows that merely shift rank keep their own.
    """
    totals = fetch_player_totals(session, [player_id])
    if not totals:
        raise ReferentialIntegrityError("player", player_id)
    player_totals = totals[0]
    refreshed_at = now or utcnow()

    windows: dict[Dimension, tuple[int, int]] = {}
    for dimension in Dimension:
        rows, stamps = _stored_rows(session, dimension)
        spliced, low, high = splice_player(dimension, rows, player_totals)
        windows[dimension] = (low, high)
        if low > high:
            continue

        session.execute(
            delete(LeaderboardEntry).where(
                LeaderboardEntry.dimension == dimension.value,
                LeaderboardEntry.rank >= low,
                LeaderboardEntry.rank <= high,
            )
        )
        rewritten = [row for row in spliced if low <= row.rank <= high]
        if rewritten:
            session.execute(
                insert(LeaderboardEntry),
                [
                    _entry_values(row, refreshed_at if row.player_id == player_id else stamps[row.player_id])
                    for row in rewritten
                ],
            )
    return windows


def _display_row(rank: int, player_id: int, name: str, key: SortKey) -> LeaderboardRow:
    return LeaderboardRow(
        rank=rank,
        player_id=player_id,
        player_name=name,
        primary_value=display_value(key.primary),
        tiebreak_value=display_value(key.tiebreak),
        secondary_tiebreak_value=(
            None if key.secondary_tiebreak is None else display_value(key.secondary_tiebreak)
        ),
    )


def _window_page(
    session: Session,
    dimension: Dimension,
    window: TimeWindow,
    *,
    page: int,
    page_size: int,
    now: datetime,
) -> LeaderboardPage:
    totals = fetch_window_totals(session, window.cutoff(now))
    names = {player.player_id: player.name for player in totals}
    ranked = rank_players(dimension, totals)
    start = (page - 1) * page_size
    return LeaderboardPage(
        dimension=dimension,
        page=page,
        page_size=page_size,
        total_entries=len(ranked),
        rows=tuple(
            _display_row(row.rank, row.player_id, names[row.player_id], row.key)
            for row in ranked[start : start + page_size]
        ),
        refreshed_at=now,
        pending_players=0,
        is_stale=False,
        window=window,
    )


def get_leaderboard(
    session: Session,
    dimension: Dimension | str,
    *,
    page: int = 1,
    page_size: int = 25,
    max_staleness_seconds: int | None = None,
    window: TimeWindow | str = TimeWindow.ALL_TIME,
    now: datetime | None = None,
) -> LeaderboardPage:
    """Read one page of a dimension with display-rounded values.

    The all-time window reads the materialized rows. ``refreshed_at`` is then
    the oldest row refresh in the dimension, and a player is pending when it
    has games but no row yet or changed after its own row was written. Shorter
    windows are ranked live from participant rows and are never stale.
    """
    dimension = Dimension(dimension)
    window = TimeWindow(window)
    if page < 1:
        raise ValidationError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValidationError(f"page_size must be >= 1, got {page_size}")
    current = now or utcnow()
    if window is not TimeWindow.ALL_TIME:
        return _window_page(session, dimension, window, page=page, page_size=page_size, now=current)

    total_entries, refreshed_at = session.execute(
        select(func.count(LeaderboardEntry.id), func.min(LeaderboardEntry.refreshed_at)).where(
            LeaderboardEntry.dimension == dimension.value
        )
    ).one()

    stmt = (
        select(LeaderboardEntry, Player.name)
        .join(Player, Player.id == LeaderboardEntry.player_id)
        .where(LeaderboardEntry.dimension == dimension.value)
        .order_by(LeaderboardEntry.rank.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    rows = tuple(
        _display_row(
            entry.rank,
            entry.player_id,
            name,
            SortKey(entry.primary_value, entry.tiebreak_value, entry.secondary_tiebreak_value),
        )
        for entry, name in session.execute(stmt)
    )

    pending_stmt = (
        select(func.count(Player.id))
        .select_from(Player)
        .outerjoin(
            LeaderboardEntry,
            and_(LeaderboardEntry.player_id == Player.id, LeaderboardEntry.dimension == dimension.value),
        )
        .where(
            Player.total_games_played >= 1,
            or_(LeaderboardEntry.id.is_(None), Player.updated_at > LeaderboardEntry.refreshed_at),
        )
    )
    pending_players = int(session.execute(pending_stmt).scalar_one())

    if refreshed_at is None:
        is_stale = pending_players > 0
    elif max_staleness_seconds is None:
        is_stale = False
    else:
        is_stale = pending_players > 0 and (current - refreshed_at).total_seconds() > max_staleness_seconds

    return LeaderboardPage(
        dimension=dimension,
        page=page,
        page_size=page_size,
        total_entries=int(total_entries),
        rows=rows,
        refreshed_at=refreshed_at,
        pending_players=pending_players,
        is_stale=is_stale,
    )


__all__ = [
    "LeaderboardPage",
    "LeaderboardRow",
    "get_leaderboard",
    "refresh_leaderboard",
    "refresh_player",
]
