"""Per-game and lifetime counters plus the ratios derived from them.

Ratios are never stored: every derived value here is a pure function of the
stored counters, so it cannot drift from them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

# (participant column, player column) pairs folded by addition.
SUM_FIELDS = (
    ("total_turns", "total_turns"),
    ("total_darts", "total_darts_thrown"),
    ("total_score", "total_score"),
    ("count_180s", "total_180s"),
    ("count_140_plus", "total_140_plus"),
    ("checkout_attempts", "total_checkout_attempts"),
    ("checkout_successes", "total_checkout_successes"),
)
# (participant column, player column) pairs folded by pairwise maximum.
MAX_FIELDS = (
    ("max_dart", "max_dart_score"),
    ("max_turn", "max_turn_score"),
    ("best_checkout", "best_checkout"),
)
PLAYER_COUNTER_FIELDS = (
    "total_games_played",
    "total_games_won",
    *(player_field for _, player_field in SUM_FIELDS),
    *(player_field for _, player_field in MAX_FIELDS),
)
PARTICIPANT_COUNTER_FIELDS = (
    *(participant_field for participant_field, _ in SUM_FIELDS),
    *(participant_field for participant_field, _ in MAX_FIELDS),
)


@dataclass(frozen=True)
class ParticipantCounters:
    """Per-game counters of one participant, as summed from its turns."""

    total_turns: int = 0
    total_darts: int = 0
    total_score: int = 0
    max_dart: int = 0
    max_turn: int = 0
    count_180s: int = 0
    count_140_plus: int = 0
    checkout_attempts: int = 0
    checkout_successes: int = 0
    best_checkout: int = 0

    def as_dict(self) -> dict[str, int]:
        return {field: getattr(self, field) for field in PARTICIPANT_COUNTER_FIELDS}

    @classmethod
    def from_row(cls, row: object) -> ParticipantCounters:
        return cls(**{field: int(getattr(row, field)) for field in PARTICIPANT_COUNTER_FIELDS})


@dataclass(frozen=True)
class PlayerTotals:
    """Lifetime counters of one player."""

    player_id: int
    name: str
    total_games_played: int = 0
    total_games_won: int = 0
    total_darts_thrown: int = 0
    total_score: int = 0
    total_180s: int = 0
    total_140_plus: int = 0
    max_dart_score: int = 0
    max_turn_score: int = 0
    total_checkout_attempts: int = 0
    total_checkout_successes: int = 0
    total_turns: int = 0
    best_checkout: int = 0

    @classmethod
    def from_row(cls, row: object) -> PlayerTotals:
        return cls(
            player_id=int(getattr(row, "id")),
            name=str(getattr(row, "name")),
            **{field: int(getattr(row, field)) for field in PLAYER_COUNTER_FIELDS},
        )

    @property
    def win_rate(self) -> float:
        return win_rate(self.total_games_won, self.total_games_played)

    @property
    def avg_per_dart(self) -> float:
        return average(self.total_score, self.total_darts_thrown)

    @property
    def avg_per_turn(self) -> float:
        return average(self.total_score, self.total_turns)

    @property
    def checkout_percentage(self) -> float:
        return percentage(self.total_checkout_successes, self.total_checkout_attempts)


def average(total: int, count: int) -> float:
    if count <= 0:
        return 0.0
    return total / count


def percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part * 100.0 / whole


def win_rate(games_won: int, games_played: int) -> float:
    """Win rate in percent, 0 for players without games."""
    return percentage(games_won, games_played)


def display_value(value: float) -> float:
    """Round a derived value for presentation (ranking uses the raw value)."""
    return round(value, 2)


def player_deltas(counters: ParticipantCounters, *, is_winner: bool) -> dict[str, int]:
    """Additive player-counter deltas contributed by one completed game."""
    deltas = {"total_games_played": 1, "total_games_won": 1 if is_winner else 0}
    for participant_field, player_field in SUM_FIELDS:
        deltas[player_field] = getattr(counters, participant_field)
    return deltas


def player_maxima(counters: ParticipantCounters) -> dict[str, int]:
    """Max-type player counters offered by one completed game."""
    return {
        player_field: getattr(counters, participant_field)
        for participant_field, player_field in MAX_FIELDS
    }


def fold_participants(games: Iterable[tuple[ParticipantCounters, bool]]) -> dict[str, int]:
    """Recompute lifetime player counters from (counters, is_winner) per game."""
    totals = {field: 0 for field in PLAYER_COUNTER_FIELDS}
    for counters, is_winner in games:
        for field, delta in player_deltas(counters, is_winner=is_winner).items():
            totals[field] += delta
        for field, value in player_maxima(counters).items():
            totals[field] = max(totals[field], value)
    return totals


@dataclass(frozen=True)
class HeadToHead:
    """One player's record against one opponent over their shared completed games.

    A shared game won by a third player counts in ``games`` only.
    """

    player_id: int
    opponent_id: int
    games: int = 0
    wins: int = 0
    losses: int = 0

    @property
    def decided(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return percentage(self.wins, self.decided)


def head_to_head(
    player_id: int,
    games: Iterable[tuple[int | None, Iterable[int]]],
) -> dict[int, HeadToHead]:
    """Fold (winner_id, participant ids) per game into records keyed by opponent."""
    tallies: dict[int, list[int]] = {}
    for winner_id, participant_ids in games:
        seated = set(participant_ids)
        if player_id not in seated:
            continue
        for opponent_id in seated - {player_id}:
            tally = tallies.setdefault(opponent_id, [0, 0, 0])
            tally[0] += 1
            if winner_id == player_id:
                tally[1] += 1
            elif winner_id == opponent_id:
                tally[2] += 1
    return {
        opponent_id: HeadToHead(player_id, opponent_id, games=played, wins=wins, losses=losses)
        for opponent_id, (played, wins, losses) in tallies.items()
    }


__all__ = [
    "MAX_FIELDS",
    "PARTICIPANT_COUNTER_FIELDS",
    "PLAYER_COUNTER_FIELDS",
    "SUM_FIELDS",
    "HeadToHead",
    "ParticipantCounters",
    "PlayerTotals",
    "average",
    "display_value",
    "fold_participants",
    "head_to_head",
    "percentage",
    "player_deltas",
    "player_maxima",
    "win_rate",
]
