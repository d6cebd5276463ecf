"""Shared fixtures: an in-memory SQLite store and game-building helpers."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db import create_db_engine, create_session_factory, ensure_schema
from domain.turns import TurnInput
from models import Game
from repositories.game_repository import add_participant, create_game, get_or_create_player, record_turn


def make_turn(
    turn_number: int,
    darts: Sequence[int],
    score_before: int,
    *,
    round_number: int | None = None,
    busted: bool = False,
    checkout_attempt: bool | None = None,
) -> TurnInput:
    total = sum(darts)
    score_after = score_before if busted else score_before - total
    successful = not busted and score_after == 0
    return TurnInput(
        turn_number=turn_number,
        round_number=turn_number if round_number is None else round_number,
        dart_scores=tuple(darts),
        turn_total=total,
        score_before=score_before,
        score_after=score_after,
        is_busted=busted,
        is_checkout_attempt=successful if checkout_attempt is None else checkout_attempt,
        is_successful_checkout=successful,
    )


def darts_to_turns(starting_score: int, visits: Sequence[Sequence[int]]) -> list[TurnInput]:
    """Chain visits into turns, tracking the remaining score."""
    turns = []
    remaining = starting_score
    for number, darts in enumerate(visits, start=1):
        turn = make_turn(number, darts, remaining)
        turns.append(turn)
        remaining = turn.score_after
    return turns


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_db_engine("sqlite://")
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture
def players(session: Session) -> Callable[..., list[int]]:
    def create(*names: str) -> list[int]:
        return [get_or_create_player(session, name).id for name in names]

    return create


@pytest.fixture
def game_factory() -> Callable[..., Game]:
    """Persist a game with one participant per player and its turns."""

    def create(
        session: Session,
        visits_by_player: Mapping[int, Sequence[Sequence[int]]],
        *,
        game_type: int = 501,
        scoring_mode: str = "per-dart",
    ) -> Game:
        game = create_game(session, game_type=game_type, scoring_mode=scoring_mode)
        for order, (player_id, visits) in enumerate(visits_by_player.items()):
            participant = add_participant(
                session,
                game_id=game.id,
                player_id=player_id,
                player_order=order,
            )
            for turn in darts_to_turns(game_type, visits):
                record_turn(session, participant.id, turn)
        return game

    return create


@pytest.fixture
def turn() -> Callable[..., TurnInput]:
    return make_turn
