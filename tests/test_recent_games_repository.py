"""Repository tests for the materialized recent-games summary."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from domain.errors import ValidationError
from models import Game
from repositories.game_repository import finalize_participant_stats, mark_game_completed
from repositories.recent_games_repository import get_recent_games, refresh_recent_game, refresh_recent_games
from repositories.stats_repository import apply_game_completion

FAST = [[60, 60, 60], [60, 60, 60], [60, 57, 24]]
SLOW = [[20, 20, 20], [19, 19, 19], [5, 1, 20]]
STARTED = datetime(2026, 3, 1, 19, 30)


def _complete(session, game_factory, visits, winner_id=None) -> int:
    game = game_factory(session, visits)
    finalize_participant_stats(session, game.id)
    mark_game_completed(session, game.id, winner_id=winner_id, ended_without_winner=winner_id is None)
    apply_game_completion(session, game.id)
    return game.id


def _set_times(session, game_id: int, created_at: datetime, minutes: float) -> None:
    session.execute(
        update(Game)
        .where(Game.id == game_id)
        .values(created_at=created_at, completed_at=created_at + timedelta(minutes=minutes))
        .execution_options(synchronize_session=False)
    )


def test_refresh_summarizes_completed_games_newest_first(session, players, game_factory) -> None:
    anna, ben, cara = players("Anna", "Ben", "Cara")
    first = _complete(session, game_factory, {anna: FAST, ben: SLOW}, winner_id=anna)
    second = _complete(session, game_factory, {ben: SLOW, cara: SLOW})
    game_factory(session, {anna: SLOW, cara: SLOW})
    _set_times(session, first, STARTED, minutes=1.5)
    _set_times(session, second, STARTED + timedelta(hours=1), minutes=3)

    assert refresh_recent_games(session) == 2

    page = get_recent_games(session)
    assert [game.game_id for game in page.rows] == [second, first]
    assert page.pending_games == 0

    newest, oldest = page.rows
    assert oldest.winner_name == "Anna"
    assert oldest.player_count == 2
    assert oldest.total_darts == 18
    assert oldest.total_turns == 6
    assert oldest.players_with_180s == 1
    assert oldest.duration_minutes == pytest.approx(1.5)
    assert newest.winner_id is None
    assert newest.winner_name is None
    assert newest.players_with_180s == 0

    assert [game.game_id for game in get_recent_games(session, limit=1).rows] == [second]


def test_single_game_upsert_clears_pending(session, players, game_factory) -> None:
    anna, ben = players("Anna", "Ben")
    game_id = _complete(session, game_factory, {anna: FAST, ben: SLOW}, winner_id=anna)

    before = get_recent_games(session)
    assert before.rows == ()
    assert before.pending_games == 1
    assert before.refreshed_at is None

    assert refresh_recent_game(session, game_id)
    assert refresh_recent_game(session, game_id)
    after = get_recent_games(session)
    assert [game.game_id for game in after.rows] == [game_id]
    assert after.pending_games == 0

    open_game = game_factory(session, {anna: SLOW, ben: SLOW})
    assert not refresh_recent_game(session, open_game.id)


def test_invalid_limit_is_rejected(session) -> None:
    with pytest.raises(ValidationError):
        get_recent_games(session, limit=0)
