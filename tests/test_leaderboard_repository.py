"""Repository tests for the materialized leaderboard."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select, update

from domain.errors import ReferentialIntegrityError, ValidationError
from domain.leaderboard import Dimension, TimeWindow
from models import Game, LeaderboardEntry
from repositories.game_repository import finalize_participant_stats, mark_game_completed
from repositories.leaderboard_repository import get_leaderboard, refresh_leaderboard, refresh_player
from repositories.stats_repository import apply_game_completion

FAST = [[60, 60, 60], [60, 60, 60], [60, 57, 24]]
SLOW = [[20, 20, 20], [19, 19, 19], [5, 1, 20]]


def _play(session, game_factory, visits, winner_id):
    game = game_factory(session, visits)
    finalize_participant_stats(session, game.id)
    mark_game_completed(session, game.id, winner_id=winner_id)
    return apply_game_completion(session, game.id)


def _snapshot(session):
    rows = session.execute(
        select(LeaderboardEntry).order_by(LeaderboardEntry.dimension, LeaderboardEntry.rank)
    ).scalars()
    return [
        (row.dimension, row.rank, row.player_id, row.primary_value, row.tiebreak_value)
        for row in rows
    ]


def test_full_refresh_ranks_every_dimension(session, players, game_factory) -> None:
    anna, ben, cara = players("Anna", "Ben", "Cara")
    _play(session, game_factory, {anna: FAST, ben: SLOW}, anna)
    _play(session, game_factory, {anna: SLOW, cara: FAST}, cara)

    counts = refresh_leaderboard(session)
    assert set(counts) == set(Dimension)
    assert counts[Dimension.WINS] == 3

    page = get_leaderboard(session, Dimension.WINS)
    # anna and cara have one win each; cara wins on the win-rate tie-break
    assert [row.player_name for row in page.rows] == ["Cara", "Anna", "Ben"]
    assert page.rows[0].primary_value == pytest.approx(1.0)
    assert page.rows[0].tiebreak_value == pytest.approx(100.0)
    assert page.rows[0].secondary_tiebreak_value == pytest.approx(1.0)


def test_incremental_refresh_matches_full_refresh(session, players, game_factory) -> None:
    anna, ben, cara = players("Anna", "Ben", "Cara")
    _play(session, game_factory, {anna: FAST, ben: SLOW}, anna)
    refresh_leaderboard(session)

    for visits, winner in (
        ({ben: FAST, cara: SLOW}, ben),
        ({cara: FAST, anna: SLOW}, cara),
        ({cara: FAST, ben: SLOW}, cara),
    ):
        for player_id in _play(session, game_factory, visits, winner):
            refresh_player(session, player_id)

    incremental = _snapshot(session)
    refresh_leaderboard(session)
    assert incremental == _snapshot(session)


def test_refresh_player_rewrites_only_the_moved_window(session, players, game_factory) -> None:
    anna, ben, cara, dan = players("Anna", "Ben", "Cara", "Dan")
    _play(session, game_factory, {anna: FAST, ben: SLOW}, anna)
    _play(session, game_factory, {cara: FAST, dan: SLOW}, cara)
    refresh_leaderboard(session)

    _play(session, game_factory, {dan: FAST, ben: SLOW}, dan)
    windows = refresh_player(session, dan)
    low, high = windows[Dimension.WINS]
    assert low >= 1
    assert high <= 4

    with pytest.raises(ReferentialIntegrityError):
        refresh_player(session, 9999)


def test_players_without_games_are_left_out(session, players, game_factory) -> None:
    anna, ben, _ = players("Anna", "Ben", "Idle")
    _play(session, game_factory, {anna: FAST, ben: SLOW}, anna)
    refresh_leaderboard(session)
    assert get_leaderboard(session, "wins").total_entries == 2


def test_paging_and_staleness(session, players, game_factory) -> None:
    anna, ben, cara = players("Anna", "Ben", "Cara")
    _play(session, game_factory, {anna: FAST, ben: SLOW}, anna)
    refresh_leaderboard(session)

    second_page = get_leaderboard(session, Dimension.WINS, page=2, page_size=1)
    assert [row.rank for row in second_page.rows] == [2]
    assert second_page.total_entries == 2
    assert second_page.pending_players == 0

    # cara's game arrives after the refresh and is not yet projected
    _play(session, game_factory, {cara: FAST, anna: SLOW}, cara)
    refreshed_at = get_leaderboard(session, Dimension.WINS).refreshed_at
    fresh_enough = get_leaderboard(
        session, Dimension.WINS, max_staleness_seconds=60, now=refreshed_at + timedelta(seconds=30)
    )
    assert fresh_enough.pending_players == 2
    assert not fresh_enough.is_stale

    too_old = get_leaderboard(
        session, Dimension.WINS, max_staleness_seconds=60, now=refreshed_at + timedelta(minutes=5)
    )
    assert too_old.is_stale

    refresh_leaderboard(session)
    page = get_leaderboard(session, Dimension.WINS, max_staleness_seconds=60)
    assert page.pending_players == 0
    assert not page.is_stale
    assert page.total_entries == 3


def test_splicing_one_player_leaves_other_pending_rows_visible(session, players, game_factory) -> None:
    anna, ben, cara, dan = players("Anna", "Ben", "Cara", "Dan")
    _play(session, game_factory, {anna: FAST, ben: SLOW}, anna)
    _play(session, game_factory, {cara: FAST, dan: SLOW}, cara)
    refresh_leaderboard(session)
    full_refresh = get_leaderboard(session, Dimension.WINS).refreshed_at

    # cara and dan are aggregated without a leaderboard refresh
    _play(session, game_factory, {dan: FAST, cara: SLOW}, dan)
    for player_id in _play(session, game_factory, {anna: FAST, ben: SLOW}, anna):
        refresh_player(session, player_id)

    page = get_leaderboard(session, Dimension.WINS)
    assert page.pending_players == 2
    assert page.refreshed_at == full_refresh

    refresh_player(session, cara)
    refresh_player(session, dan)
    assert get_leaderboard(session, Dimension.WINS).pending_players == 0


def test_invalid_paging_is_rejected(session) -> None:
    with pytest.raises(ValidationError):
        get_leaderboard(session, Dimension.WINS, page=0)
    with pytest.raises(ValueError):
        get_leaderboard(session, "longest_leg")


def test_time_windows_rank_only_recent_games(session, players, game_factory) -> None:
    anna, ben, cara = players("Anna", "Ben", "Cara")
    now = datetime(2026, 3, 15, 12, 0)
    for visits, winner, age in (
        ({anna: FAST, ben: SLOW}, anna, timedelta(days=40)),
        ({anna: FAST, ben: SLOW}, anna, timedelta(days=40)),
        ({cara: FAST, ben: SLOW}, cara, timedelta(days=10)),
        ({ben: FAST, anna: SLOW}, ben, timedelta(days=2)),
    ):
        game = game_factory(session, visits)
        finalize_participant_stats(session, game.id)
        mark_game_completed(session, game.id, winner_id=winner)
        apply_game_completion(session, game.id)
        session.execute(
            update(Game)
            .where(Game.id == game.id)
            .values(created_at=now - age)
            .execution_options(synchronize_session=False)
        )
    refresh_leaderboard(session)

    def order(window):
        page = get_leaderboard(session, Dimension.WINS, window=window, now=now)
        return [row.player_name for row in page.rows]

    assert order(TimeWindow.ALL_TIME) == ["Anna", "Cara", "Ben"]
    assert order("30-days") == ["Cara", "Ben", "Anna"]
    assert order(TimeWindow.LAST_7_DAYS) == ["Ben", "Anna"]

    week = get_leaderboard(session, Dimension.WINS, window=TimeWindow.LAST_7_DAYS, now=now, page=2, page_size=1)
    assert week.window is TimeWindow.LAST_7_DAYS
    assert week.total_entries == 2
    assert [row.rank for row in week.rows] == [2]
    assert week.pending_players == 0
    assert not week.is_stale
