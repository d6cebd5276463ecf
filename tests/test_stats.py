"""Unit tests for derived ratios and lifetime counter folding."""

from __future__ import annotations

import pytest

from domain.stats import (
    HeadToHead,
    ParticipantCounters,
    PlayerTotals,
    display_value,
    fold_participants,
    head_to_head,
    player_deltas,
)


def test_ratios_are_zero_without_denominator() -> None:
    totals = PlayerTotals(player_id=1, name="Nobody")
    assert totals.win_rate == 0.0
    assert totals.avg_per_dart == 0.0
    assert totals.avg_per_turn == 0.0
    assert totals.checkout_percentage == 0.0


def test_ratios_use_stored_counters() -> None:
    totals = PlayerTotals(
        player_id=1,
        name="Anna",
        total_games_played=3,
        total_games_won=2,
        total_darts_thrown=60,
        total_score=1503,
        total_turns=20,
        total_checkout_attempts=6,
        total_checkout_successes=2,
    )
    assert totals.win_rate == pytest.approx(66.6666667)
    assert totals.avg_per_dart == pytest.approx(25.05)
    assert totals.avg_per_turn == pytest.approx(75.15)
    assert totals.checkout_percentage == pytest.approx(33.3333333)
    assert display_value(totals.win_rate) == pytest.approx(66.67)


def test_player_deltas_map_participant_fields_to_player_fields() -> None:
    counters = ParticipantCounters(total_darts=12, total_score=240, count_180s=1, checkout_attempts=2)
    deltas = player_deltas(counters, is_winner=True)
    assert deltas["total_games_played"] == 1
    assert deltas["total_games_won"] == 1
    assert deltas["total_darts_thrown"] == 12
    assert deltas["total_180s"] == 1
    assert deltas["total_checkout_attempts"] == 2


def test_fold_participants_sums_and_takes_maxima() -> None:
    games = [
        (ParticipantCounters(total_score=300, max_turn=100, best_checkout=40), True),
        (ParticipantCounters(total_score=200, max_turn=140, best_checkout=32), False),
    ]
    totals = fold_participants(games)
    assert totals["total_games_played"] == 2
    assert totals["total_games_won"] == 1
    assert totals["total_score"] == 500
    assert totals["max_turn_score"] == 140
    assert totals["best_checkout"] == 40


def test_head_to_head_counts_only_direct_results_as_wins_and_losses() -> None:
    games = [
        (1, [1, 2]),
        (2, [1, 2, 3]),
        (3, [1, 2, 3]),
        (1, [1, 3]),
        (None, [1, 2]),
        (2, [2, 3]),
    ]
    records = head_to_head(1, games)
    assert records == {
        2: HeadToHead(1, 2, games=4, wins=1, losses=1),
        3: HeadToHead(1, 3, games=3, wins=1, losses=1),
    }
    assert records[2].decided == 2
    assert records[2].win_rate == pytest.approx(50.0)
    assert HeadToHead(1, 4).win_rate == 0.0
