"""Pure round-robin fixture generation and standings ordering."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from domain.errors import TopologyError


@dataclass(frozen=True)
class Fixture:
    player1_id: int
    player2_id: int
    fixture_round: int
    pass_number: int = 1

    @property
    def pair(self) -> frozenset[int]:
        return frozenset((self.player1_id, self.player2_id))


@dataclass(frozen=True)
class PointsSystem:
    points_for_win: int = 3
    points_for_draw: int = 1
    points_for_loss: int = 0

    def points_for(self, *, wins: int, draws: int, losses: int) -> int:
        return (
            wins * self.points_for_win
            + draws * self.points_for_draw
            + losses * self.points_for_loss
        )


@dataclass(frozen=True)
class StandingRow:
    player_id: int
    matches_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    points: int = 0
    legs_won: int = 0
    legs_lost: int = 0

    @property
    def leg_difference(self) -> int:
        return self.legs_won - self.legs_lost


@dataclass(frozen=True)
class FixtureResult:
    """A completed fixture: ``winner_id`` is None for a draw."""

    player1_id: int
    player2_id: int
    winner_id: int | None
    player1_legs: int = 0
    player2_legs: int = 0


@dataclass(frozen=True)
class RankedStanding:
    rank: int
    row: StandingRow


def expected_fixture_count(player_count: int, matches_per_pairing: int) -> int:
    return player_count * (player_count - 1) // 2 * matches_per_pairing


def generate_fixtures(player_ids: Sequence[int], matches_per_pairing: int = 1) -> list[Fixture]:
    """Circle-method round robin; the second pass mirrors the first with roles swapped.

    With an odd player count a phantom seat is added and its pairings become
    rest rounds.
    """
    if matches_per_pairing not in (1, 2):
        raise TopologyError(f"matches_per_pairing must be 1 or 2, got {matches_per_pairing}")
    if len(player_ids) < 2:
        raise TopologyError(f"Need at least 2 players, got {len(player_ids)}")
    if len(set(player_ids)) != len(player_ids):
        raise TopologyError("A player cannot be entered into the same league twice")

    seats: list[int | None] = list(player_ids)
    if len(seats) % 2 == 1:
        seats.append(None)
    seat_count = len(seats)
    rounds = seat_count - 1

    first_pass: list[Fixture] = []
    rotation = list(range(seat_count))
    for round_index in range(rounds):
        for offset in range(seat_count // 2):
            home = seats[rotation[offset]]
            away = seats[rotation[seat_count - 1 - offset]]
            if home is None or away is None:
                continue
            first_pass.append(Fixture(home, away, fixture_round=round_index + 1, pass_number=1))
        # seat 0 stays fixed while the others rotate one position
        rotation.insert(1, rotation.pop())

    fixtures = list(first_pass)
    if matches_per_pairing == 2:
        fixtures.extend(
            Fixture(
                fixture.player2_id,
                fixture.player1_id,
                fixture_round=fixture.fixture_round + rounds,
                pass_number=2,
            )
            for fixture in first_pass
        )

    validate_fixtures(fixtures, len(player_ids), matches_per_pairing)
    return fixtures


def validate_fixtures(
    fixtures: Iterable[Fixture],
    player_count: int,
    matches_per_pairing: int,
) -> None:
    """Reject self pairings, duplicate pairs within a pass and incomplete passes."""
    fixtures = list(fixtures)
    seen: dict[int, set[frozenset[int]]] = {}
    for fixture in fixtures:
        if fixture.player1_id == fixture.player2_id:
            raise TopologyError(f"Player {fixture.player1_id} cannot be paired with themselves")
        pairs = seen.setdefault(fixture.pass_number, set())
        if fixture.pair in pairs:
            raise TopologyError(
                f"Duplicate fixture {sorted(fixture.pair)} in pass {fixture.pass_number}"
            )
        pairs.add(fixture.pair)

    expected = expected_fixture_count(player_count, matches_per_pairing)
    if len(fixtures) != expected:
        raise TopologyError(f"Expected {expected} fixtures, generated {len(fixtures)}")


def _head_to_head_points(
    group: set[int],
    results: Sequence[FixtureResult],
    points: PointsSystem,
) -> dict[int, int]:
    """Mini-league points from fixtures played only between members of ``group``."""
    table = {player_id: 0 for player_id in group}
    for result in results:
        if result.player1_id not in group or result.player2_id not in group:
            continue
        if result.winner_id is None:
            table[result.player1_id] += points.points_for_draw
            table[result.player2_id] += points.points_for_draw
            continue
        loser_id = result.player2_id if result.winner_id == result.player1_id else result.player1_id
        table[result.winner_id] += points.points_for_win
        table[loser_id] += points.points_for_loss
    return table


def rank_standings(
    rows: Iterable[StandingRow],
    results: Sequence[FixtureResult],
    points: PointsSystem,
) -> list[RankedStanding]:
    """Order standings: points, leg difference, head-to-head, legs won, player id.

    Head-to-head is evaluated as a mini-league among all players still tied
    on points and leg difference.
    """
    rows = list(rows)
    groups: dict[tuple[int, int], set[int]] = {}
    for row in rows:
        groups.setdefault((row.points, row.leg_difference), set()).add(row.player_id)

    head_to_head: dict[int, int] = {}
    for group in groups.values():
        if len(group) > 1:
            head_to_head.update(_head_to_head_points(group, results, points))

    ordered = sorted(
        rows,
        key=lambda row: (
            -row.points,
            -row.leg_difference,
            -head_to_head.get(row.player_id, 0),
            -row.legs_won,
            row.player_id,
        ),
    )
    return [RankedStanding(rank=rank, row=row) for rank, row in enumerate(ordered, start=1)]


def result_deltas(
    result: FixtureResult,
    points: PointsSystem,
) -> dict[int, dict[str, int]]:
    """Relative standings increments for both sides of one completed fixture."""
    deltas: dict[int, dict[str, int]] = {}
    sides = (
        (result.player1_id, result.player1_legs, result.player2_legs),
        (result.player2_id, result.player2_legs, result.player1_legs),
    )
    for player_id, legs_for, legs_against in sides:
        if result.winner_id is None:
            wins, draws, losses = 0, 1, 0
        elif result.winner_id == player_id:
            wins, draws, losses = 1, 0, 0
        else:
            wins, draws, losses = 0, 0, 1
        deltas[player_id] = {
            "matches_played": 1,
            "wins": wins,
            "draws": draws,
            "losses": losses,
            "points": points.points_for(wins=wins, draws=draws, losses=losses),
            "legs_won": legs_for,
            "legs_lost": legs_against,
        }
    return deltas


__all__ = [
    "Fixture",
    "FixtureResult",
    "PointsSystem",
    "RankedStanding",
    "StandingRow",
    "expected_fixture_count",
    "generate_fixtures",
    "rank_standings",
    "result_deltas",
    "validate_fixtures",
]
