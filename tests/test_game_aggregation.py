"""Repository tests for game intake and the aggregate maintainer."""

from __future__ import annotations

from dataclasses import replace

import pytest
from sqlalchemy import select

from domain.errors import (
    GameStateError,
    IdempotencyConflict,
    ReferentialIntegrityError,
    ValidationError,
)
from models import GameParticipant, Turn
from repositories.game_repository import (
    add_participant,
    create_game,
    finalize_participant_stats,
    get_or_create_player,
    mark_game_completed,
    record_turn,
)
from repositories.stats_repository import apply_game_completion, get_player_totals

# 501 in nine darts: 180, 180, 141
NINE_DARTER = [[60, 60, 60], [60, 60, 60], [60, 57, 24]]
STEADY = [[20, 20, 20], [19, 19, 19], [5, 1, 20]]


def _complete(session, game_id: int, winner_id: int | None) -> None:
    finalize_participant_stats(session, game_id)
    mark_game_completed(session, game_id, winner_id=winner_id)
    apply_game_completion(session, game_id)


def test_players_are_created_once_per_name(session) -> None:
    first = get_or_create_player(session, " Anna ")
    second = get_or_create_player(session, "Anna")
    assert first.id == second.id
    assert first.name == "Anna"
    with pytest.raises(ValidationError):
        get_or_create_player(session, "   ")


def test_checkout_scenario_updates_wins_and_checkouts(session, players, game_factory, turn) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: [[60, 60, 60], [60, 60, 60], [60, 21]], ben: STEADY})
    participant = session.execute(
        select(GameParticipant).where(GameParticipant.game_id == game.id, GameParticipant.player_id == anna)
    ).scalar_one()
    record_turn(session, participant.id, turn(4, [20, 20, 20], 60))

    before = get_player_totals(session, anna)
    _complete(session, game.id, anna)
    after = get_player_totals(session, anna)

    assert after.total_games_won - before.total_games_won == 1
    assert after.total_checkout_successes - before.total_checkout_successes == 1
    assert after.best_checkout == 60
    stored = session.execute(
        select(Turn).where(Turn.game_player_id == participant.id, Turn.turn_number == 4)
    ).scalar_one()
    assert stored.is_successful_checkout
    assert not stored.is_busted


def test_180_scenario_increments_maximums_by_one(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: [[60, 60, 60], [20, 20, 20]], ben: [[20, 20, 20]]})
    assert get_player_totals(session, anna).total_180s == 0

    _complete(session, game.id, anna)

    totals = get_player_totals(session, anna)
    assert totals.total_180s == 1
    assert totals.max_turn_score == 180
    assert totals.max_dart_score == 60


def test_apply_game_completion_is_idempotent(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: NINE_DARTER, ben: STEADY})
    _complete(session, game.id, anna)
    once = get_player_totals(session, anna)

    with pytest.raises(IdempotencyConflict):
        apply_game_completion(session, game.id)
    assert get_player_totals(session, anna) == once


def test_conservation_of_total_score(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    first = game_factory(session, {anna: NINE_DARTER, ben: STEADY})
    _complete(session, first.id, anna)
    second = game_factory(session, {anna: STEADY, ben: NINE_DARTER})
    _complete(session, second.id, ben)

    for player_id in (anna, ben):
        totals = get_player_totals(session, player_id)
        participant_sum = sum(
            session.execute(
                select(GameParticipant.total_score).where(GameParticipant.player_id == player_id)
            ).scalars()
        )
        turn_sum = sum(
            session.execute(
                select(Turn.turn_total)
                .join(GameParticipant, GameParticipant.id == Turn.game_player_id)
                .where(GameParticipant.player_id == player_id, Turn.is_busted.is_(False))
            ).scalars()
        )
        assert totals.total_score == participant_sum == turn_sum
        assert totals.total_games_played == 2
        assert totals.total_games_won == 1


def test_finalize_assigns_finish_rank_and_final_score(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: NINE_DARTER, ben: STEADY})
    participants = {row.player_id: row for row in finalize_participant_stats(session, game.id)}

    assert participants[anna].final_score == 0
    assert participants[anna].finish_round == 3
    assert participants[anna].finish_rank == 1
    assert participants[ben].finish_round is None
    assert participants[ben].finish_rank == 2
    assert participants[ben].final_score == 501 - 60 - 57 - 26
    assert participants[anna].count_180s == 2
    assert participants[anna].count_140_plus == 1


def test_aggregation_requires_a_completed_existing_game(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: STEADY, ben: STEADY})
    with pytest.raises(GameStateError):
        apply_game_completion(session, game.id)
    with pytest.raises(ReferentialIntegrityError):
        apply_game_completion(session, 9999)


def test_referential_integrity_on_intake(session, players, turn) -> None:
    (anna,) = players("Anna")
    game = create_game(session)
    with pytest.raises(ReferentialIntegrityError):
        add_participant(session, game_id=9999, player_id=anna, player_order=0)
    with pytest.raises(ReferentialIntegrityError):
        add_participant(session, game_id=game.id, player_id=9999, player_order=0)
    with pytest.raises(ReferentialIntegrityError):
        record_turn(session, 9999, turn(1, [20], 501))


def test_invalid_turn_is_rejected_before_persistence(session, players, turn) -> None:
    (anna,) = players("Anna")
    game = create_game(session)
    participant = add_participant(session, game_id=game.id, player_id=anna, player_order=0)
    bad = turn(1, [20, 20, 20], 501)
    bad = replace(bad, turn_total=59)

    with pytest.raises(ValidationError):
        record_turn(session, participant.id, bad)
    assert session.execute(select(Turn)).scalars().all() == []


def test_mark_game_completed_is_a_conditional_transition(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: STEADY, ben: STEADY})

    assert mark_game_completed(session, game.id, winner_id=anna) is True
    assert mark_game_completed(session, game.id, winner_id=anna) is False
    with pytest.raises(GameStateError):
        mark_game_completed(session, game.id, winner_id=ben)
    with pytest.raises(ValidationError):
        mark_game_completed(session, game.id)


def test_completed_game_rejects_new_turns(session, players, game_factory, turn) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: STEADY, ben: STEADY})
    mark_game_completed(session, game.id, winner_id=anna)
    participant_id = session.execute(
        select(GameParticipant.id).where(GameParticipant.game_id == game.id)
    ).scalars().first()

    with pytest.raises(GameStateError):
        record_turn(session, participant_id, turn(9, [20], 300))


def test_game_without_winner_counts_as_played_only(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game = game_factory(session, {anna: STEADY, ben: STEADY})
    finalize_participant_stats(session, game.id)
    mark_game_completed(session, game.id, ended_without_winner=True)
    apply_game_completion(session, game.id)

    for player_id in (anna, ben):
        totals = get_player_totals(session, player_id)
        assert totals.total_games_played == 1
        assert totals.total_games_won == 0


def test_second_game_adds_to_counters_and_keeps_larger_maxima(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    first = game_factory(session, {anna: NINE_DARTER, ben: STEADY})
    _complete(session, first.id, anna)
    second = game_factory(session, {anna: STEADY, ben: STEADY})
    _complete(session, second.id, ben)

    totals = get_player_totals(session, anna)
    assert totals.total_games_played == 2
    assert totals.total_score == 501 + 60 + 57 + 26
    assert totals.total_darts_thrown == 18
    assert totals.max_turn_score == 180
    assert totals.best_checkout == 141
