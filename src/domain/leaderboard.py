"""Leaderboard dimensions and deterministic ranking."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from domain.stats import PlayerTotals


class Dimension(str, Enum):
    """Ranking dimensions exposed by the materialized leaderboard."""

    WINS = "wins"
    WIN_RATE = "win_rate"
    AVG_PER_DART = "avg_per_dart"
    AVG_PER_TURN = "avg_per_turn"
    MAXIMUMS = "180s"
    CHECKOUT_PERCENTAGE = "checkout_percentage"


class TimeWindow(str, Enum):
    """How far back a leaderboard looks, by game creation time."""

    ALL_TIME = "all-time"
    LAST_7_DAYS = "7-days"
    LAST_30_DAYS = "30-days"

    def cutoff(self, now: datetime) -> datetime | None:
        """Oldest game creation time inside the window; None for all-time."""
        days = WINDOW_DAYS.get(self)
        return None if days is None else now - timedelta(days=days)


WINDOW_DAYS = {TimeWindow.LAST_7_DAYS: 7, TimeWindow.LAST_30_DAYS: 30}


@dataclass(frozen=True)
class SortKey:
    """Descending sort values; ties on all three fall back to player id."""

    primary: float
    tiebreak: float
    secondary_tiebreak: float | None = None

    def order(self, player_id: int) -> tuple[float, float, float, int]:
        secondary = 0.0 if self.secondary_tiebreak is None else self.secondary_tiebreak
        return (-self.primary, -self.tiebreak, -secondary, player_id)


@dataclass(frozen=True)
class RankedRow:
    dimension: Dimension
    rank: int
    player_id: int
    key: SortKey


def sort_key(dimension: Dimension, totals: PlayerTotals) -> SortKey:
    """Primary value plus volume tie-breaks for one player in one dimension."""
    if dimension is Dimension.WINS:
        return SortKey(
            primary=float(totals.total_games_won),
            tiebreak=totals.win_rate,
            secondary_tiebreak=float(totals.total_games_played),
        )
    if dimension is Dimension.WIN_RATE:
        return SortKey(primary=totals.win_rate, tiebreak=float(totals.total_games_played))
    if dimension is Dimension.AVG_PER_DART:
        return SortKey(primary=totals.avg_per_dart, tiebreak=float(totals.total_darts_thrown))
    if dimension is Dimension.AVG_PER_TURN:
        return SortKey(primary=totals.avg_per_turn, tiebreak=float(totals.total_turns))
    if dimension is Dimension.MAXIMUMS:
        return SortKey(primary=float(totals.total_180s), tiebreak=float(totals.total_darts_thrown))
    if dimension is Dimension.CHECKOUT_PERCENTAGE:
        return SortKey(
            primary=totals.checkout_percentage,
            tiebreak=float(totals.total_checkout_attempts),
        )
    raise ValueError(f"Unsupported leaderboard dimension: {dimension!r}")


def is_ranked(totals: PlayerTotals) -> bool:
    """Only players with at least one recorded game appear on the leaderboard."""
    return totals.total_games_played >= 1


def rank_players(dimension: Dimension, players: Iterable[PlayerTotals]) -> list[RankedRow]:
    """Rank players as a total order over (primary, tie-breaks, player id)."""
    keyed = [(totals.player_id, sort_key(dimension, totals)) for totals in players if is_ranked(totals)]
    keyed.sort(key=lambda item: item[1].order(item[0]))
    return [
        RankedRow(dimension=dimension, rank=rank, player_id=player_id, key=key)
        for rank, (player_id, key) in enumerate(keyed, start=1)
    ]


def splice_player(
    dimension: Dimension,
    rows: Sequence[RankedRow],
    totals: PlayerTotals,
) -> tuple[list[RankedRow], int, int]:
    """Move one player to its new position inside an already-ranked list.

    Returns the re-ranked rows plus the inclusive rank window ``(low, high)``
    whose rows differ from ``rows``; only that window needs rewriting.
    """
    old_rank = next((row.rank for row in rows if row.player_id == totals.player_id), None)
    entries = [(row.player_id, row.key) for row in rows if row.player_id != totals.player_id]

    new_rank: int | None = None
    if is_ranked(totals):
        key = sort_key(dimension, totals)
        order = key.order(totals.player_id)
        index = 0
        while index < len(entries) and entries[index][1].order(entries[index][0]) < order:
            index += 1
        entries.insert(index, (totals.player_id, key))
        new_rank = index + 1

    spliced = [
        RankedRow(dimension=dimension, rank=rank, player_id=player_id, key=key)
        for rank, (player_id, key) in enumerate(entries, start=1)
    ]

    if old_rank is not None and new_rank is not None:
        return spliced, min(old_rank, new_rank), max(old_rank, new_rank)
    if new_rank is not None:
        # a new entrant shifts every row below it
        return spliced, new_rank, len(spliced)
    if old_rank is not None:
        return spliced, old_rank, len(rows)
    return spliced, 0, -1


__all__ = [
    "Dimension",
    "RankedRow",
    "SortKey",
    "TimeWindow",
    "WINDOW_DAYS",
    "is_ranked",
    "rank_players",
    "sort_key",
    "splice_player",
]
