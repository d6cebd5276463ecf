"""Unit tests for bracket topology, seeding, byes and placements."""

from __future__ import annotations

from collections import Counter

import pytest

from domain.bracket import (
    TournamentFormat,
    build_bracket,
    elimination_stage,
    final_placements,
    round_name,
    seed_order,
    walk_winner_path,
)
from domain.errors import TopologyError

SINGLE = TournamentFormat.SINGLE_ELIMINATION
DOUBLE = TournamentFormat.DOUBLE_ELIMINATION


def test_seed_order_keeps_top_seeds_apart() -> None:
    assert seed_order(2) == [1, 2]
    assert seed_order(4) == [1, 4, 2, 3]
    assert seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]


@pytest.mark.parametrize("tournament_format", [SINGLE, DOUBLE])
@pytest.mark.parametrize("size", [4, 8, 16, 32])
def test_winner_paths_are_acyclic_and_end_at_the_final(
    tournament_format: TournamentFormat,
    size: int,
) -> None:
    plan = build_bracket(tournament_format, size, size)
    for match in plan.matches:
        path = walk_winner_path(plan, match.key)
        assert path[-1] == plan.final_key
        assert len(path) == len(set(path))

    finals = [match for match in plan.matches if match.winner_next is None]
    assert [match.key for match in finals] == [plan.final_key]


@pytest.mark.parametrize("size", [4, 8, 16, 32])
def test_match_counts(size: int) -> None:
    assert len(build_bracket(SINGLE, size, size).matches) == size - 1
    assert len(build_bracket(DOUBLE, size, size).matches) == 2 * size - 2


@pytest.mark.parametrize("tournament_format", [SINGLE, DOUBLE])
@pytest.mark.parametrize("size", [4, 8, 16])
def test_every_later_slot_has_exactly_one_feeder(tournament_format: TournamentFormat, size: int) -> None:
    plan = build_bracket(tournament_format, size, size)
    feeds: Counter[tuple[tuple[int, int], int]] = Counter()
    for match in plan.matches:
        if match.winner_next is not None:
            feeds[(match.winner_next, match.winner_next_slot)] += 1
        if match.loser_next is not None:
            feeds[(match.loser_next, match.loser_next_slot)] += 1

    for match in plan.matches:
        if match.round == 1:
            assert (match.key, 1) not in feeds
            continue
        assert feeds[(match.key, 1)] == 1
        assert feeds[(match.key, 2)] == 1


def test_double_elimination_routes_losers_into_the_losers_bracket() -> None:
    plan = build_bracket(DOUBLE, 4, 4).by_key()
    assert plan[(1, 1)].loser_next == (-1, 1)
    assert plan[(1, 2)].loser_next == (-1, 1)
    assert plan[(2, 1)].loser_next == (-2, 1)
    assert plan[(2, 1)].loser_next_slot == 2
    assert plan[(-1, 1)].winner_next == (-2, 1)
    assert plan[(-2, 1)].winner_next == (3, 1)
    assert plan[(-2, 1)].winner_next_slot == 2
    assert plan[(3, 1)].winner_next is None


def test_byes_go_to_top_seeds() -> None:
    plan = build_bracket(SINGLE, 8, 6).by_key()
    first_round = [plan[(1, number)] for number in range(1, 5)]
    assert (first_round[0].player1_seed, first_round[0].player2_bye) == (1, True)
    assert (first_round[2].player1_seed, first_round[2].player2_bye) == (2, True)
    assert not first_round[1].player1_bye and not first_round[1].player2_bye
    assert not any(match.is_void for match in plan.values())


def test_two_byes_make_a_void_match_and_propagate() -> None:
    plan = build_bracket(SINGLE, 8, 3).by_key()
    # seeds 4 and 5 are both missing
    assert plan[(1, 2)].is_void
    assert plan[(2, 1)].player2_bye
    assert not plan[(3, 1)].is_void


def test_double_elimination_walkovers_mark_losers_bracket_slots_as_byes() -> None:
    plan = build_bracket(DOUBLE, 4, 3).by_key()
    # seed 1 has a walkover, so nobody drops from (1, 1)
    assert plan[(1, 1)].player2_bye
    assert plan[(-1, 1)].player1_bye
    assert not plan[(-1, 1)].player2_bye


@pytest.mark.parametrize(
    ("tournament_format", "size", "players"),
    [
        (SINGLE, 6, 6),
        (SINGLE, 1, 1),
        (SINGLE, 8, 9),
        (SINGLE, 8, 1),
        (DOUBLE, 2, 2),
    ],
)
def test_invalid_brackets_raise_topology_error(
    tournament_format: TournamentFormat,
    size: int,
    players: int,
) -> None:
    with pytest.raises(TopologyError):
        build_bracket(tournament_format, size, players)


def test_elimination_stage_orders_double_elimination_exits() -> None:
    assert elimination_stage(DOUBLE, 3, -1) < elimination_stage(DOUBLE, 3, -4)
    assert elimination_stage(DOUBLE, 3, -4) < elimination_stage(DOUBLE, 3, 4)
    assert elimination_stage(SINGLE, 3, 1) == 1


def test_final_placements_share_tiers() -> None:
    stages = {2: 3, 3: 2, 4: 2, 5: 1, 6: 1, 7: 1, 8: 1}
    placements = final_placements(1, stages)
    assert placements == {1: 1, 2: 2, 3: 3, 4: 3, 5: 5, 6: 5, 7: 5, 8: 5}


def test_round_names() -> None:
    assert round_name(SINGLE, 3, 3) == "Final"
    assert round_name(SINGLE, 3, 2) == "Semi-Finals"
    assert round_name(SINGLE, 4, 1) == "Round 1"
    assert round_name(DOUBLE, 2, -1) == "Losers Round 1"
    assert round_name(DOUBLE, 2, 3) == "Grand Final"
