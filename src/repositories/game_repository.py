"""Persistence for players, games, participants and turns.

This is the intake side of the engine: the gameplay collaborator writes its
finalized records through these helpers so validation happens before
anything reaches the store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from domain.errors import GameStateError, ReferentialIntegrityError, ValidationError
from domain.turns import SCORING_MODES, WIN_CONDITIONS, TurnInput, dense_finish_ranks, summarize_turns, validate_turn
from models import Game, GameParticipant, Player, Turn
from repositories.common import utcnow

logger = logging.getLogger(__name__)


def get_or_create_player(session: Session, name: str) -> Player:
    """Players are created the first time their name is seen."""
    normalized = name.strip()
    if not normalized:
        raise ValidationError("Player name must not be empty")

    player = session.execute(select(Player).where(Player.name == normalized)).scalar_one_or_none()
    if player is not None:
        return player

    player = Player(name=normalized)
    session.add(player)
    session.flush()
    logger.info("Created player id=%s name=%s", player.id, normalized)
    return player


def get_player(session: Session, player_id: int) -> Player:
    player = session.get(Player, player_id)
    if player is None:
        raise ReferentialIntegrityError("player", player_id)
    return player


def require_players(session: Session, player_ids: Iterable[int], *, referenced_by: str) -> None:
    """Raise for the first player id that does not exist."""
    wanted = set(player_ids)
    found = set(session.execute(select(Player.id).where(Player.id.in_(wanted))).scalars())
    missing = sorted(wanted - found)
    if missing:
        raise ReferentialIntegrityError("player", missing[0], referenced_by=referenced_by)


def player_names(session: Session, player_ids: Iterable[int]) -> dict[int, str]:
    ids = set(player_ids)
    if not ids:
        return {}
    rows = session.execute(select(Player.id, Player.name).where(Player.id.in_(ids)))
    return {int(player_id): str(name) for player_id, name in rows}


def get_game(session: Session, game_id: int) -> Game:
    game = session.get(Game, game_id)
    if game is None:
        raise ReferentialIntegrityError("game", game_id)
    return game


def create_game(
    session: Session,
    *,
    game_type: int = 501,
    win_condition: str = "exact",
    scoring_mode: str = "per-dart",
) -> Game:
    if game_type <= 0:
        raise ValidationError(f"game_type must be > 0, got {game_type}")
    if win_condition not in WIN_CONDITIONS:
        raise ValidationError(f"win_condition must be one of {WIN_CONDITIONS}, got {win_condition!r}")
    if scoring_mode not in SCORING_MODES:
        raise ValidationError(f"scoring_mode must be one of {SCORING_MODES}, got {scoring_mode!r}")

    game = Game(game_type=game_type, win_condition=win_condition, scoring_mode=scoring_mode)
    session.add(game)
    session.flush()
    return game


def add_participant(
    session: Session,
    *,
    game_id: int,
    player_id: int,
    player_order: int,
    starting_score: int | None = None,
) -> GameParticipant:
    """Seat one player in a game; the starting score defaults to the game type."""
    game = session.get(Game, game_id)
    if game is None:
        raise ReferentialIntegrityError("game", game_id, referenced_by="game_players")
    if session.get(Player, player_id) is None:
        raise ReferentialIntegrityError("player", player_id, referenced_by="game_players")
    if game.completed_at is not None:
        raise GameStateError(f"Game id={game_id} is already completed")
    if player_order < 0:
        raise ValidationError(f"player_order must be >= 0, got {player_order}")

    participant = GameParticipant(
        game_id=game_id,
        player_id=player_id,
        player_order=player_order,
        starting_score=game.game_type if starting_score is None else starting_score,
    )
    participant.final_score = participant.starting_score
    session.add(participant)
    session.flush()
    return participant


def record_turn(session: Session, game_player_id: int, turn: TurnInput) -> Turn:
    """Validate and persist one finalized turn."""
    participant = session.get(GameParticipant, game_player_id)
    if participant is None:
        raise ReferentialIntegrityError("game_player", game_player_id, referenced_by="turns")
    game = session.get(Game, participant.game_id)
    if game is None:
        raise ReferentialIntegrityError("game", participant.game_id, referenced_by="game_players")
    if game.completed_at is not None:
        raise GameStateError(f"Game id={game.id} is completed; its turns are immutable")

    validate_turn(turn, win_condition=game.win_condition)

    row = Turn(
        game_player_id=game_player_id,
        turn_number=turn.turn_number,
        round_number=turn.round_number,
        score_before=turn.score_before,
        score_after=turn.score_after,
        turn_total=turn.turn_total,
        dart_scores=list(turn.dart_scores),
        is_busted=turn.is_busted,
        is_checkout_attempt=turn.is_checkout_attempt,
        is_successful_checkout=turn.is_successful_checkout,
    )
    session.add(row)
    session.flush()
    return row


def fetch_participants(session: Session, game_id: int) -> list[GameParticipant]:
    stmt = (
        select(GameParticipant)
        .where(GameParticipant.game_id == game_id)
        .order_by(GameParticipant.player_id.asc())
    )
    return list(session.execute(stmt).scalars())


def fetch_turns(session: Session, game_player_ids: Sequence[int]) -> dict[int, list[Turn]]:
    """Turns per participant, in turn order."""
    turns: dict[int, list[Turn]] = {game_player_id: [] for game_player_id in game_player_ids}
    if not game_player_ids:
        return turns
    stmt = (
        select(Turn)
        .where(Turn.game_player_id.in_(game_player_ids))
        .order_by(Turn.game_player_id.asc(), Turn.turn_number.asc())
    )
    for turn in session.execute(stmt).scalars():
        turns[turn.game_player_id].append(turn)
    return turns


def finalize_participant_stats(session: Session, game_id: int) -> list[GameParticipant]:
    """Fold every participant's turns into its per-game counters.

    Also derives ``final_score``, ``finish_round`` (round of the successful
    checkout) and a dense ``finish_rank`` over the finish rounds.
    """
    game = get_game(session, game_id)
    if game.completed_at is not None:
        raise GameStateError(f"Game id={game_id} is already completed")

    participants = fetch_participants(session, game_id)
    turns_by_participant = fetch_turns(session, [participant.id for participant in participants])

    finish_rounds: dict[int, int | None] = {}
    for participant in participants:
        turns = turns_by_participant[participant.id]
        counters = summarize_turns(turns, scoring_mode=game.scoring_mode)
        for field, value in counters.as_dict().items():
            setattr(participant, field, value)

        final_score = participant.starting_score
        finish_round: int | None = None
        for turn in turns:
            if not turn.is_busted:
                final_score = turn.score_after
            if turn.is_successful_checkout and finish_round is None:
                finish_round = turn.round_number
        participant.final_score = final_score
        participant.finish_round = finish_round
        participant.updated_at = utcnow()
        finish_rounds[participant.id] = finish_round

    ranks = dense_finish_ranks(finish_rounds)
    for participant in participants:
        participant.finish_rank = ranks[participant.id]
    session.flush()
    return participants


def mark_game_completed(
    session: Session,
    game_id: int,
    *,
    winner_id: int | None = None,
    ended_without_winner: bool = False,
) -> bool:
    """Conditional incomplete -> complete transition.

    Returns True when this call performed the transition and False when the
    game was already completed with the same outcome.
    """
    game = get_game(session, game_id)
    if winner_id is None and not ended_without_winner:
        raise ValidationError("A completed game needs a winner or ended_without_winner=True")
    if winner_id is not None and ended_without_winner:
        raise ValidationError("A game with a winner cannot end without a winner")

    participants = fetch_participants(session, game_id)
    participant_ids = {participant.player_id for participant in participants}
    if winner_id is not None and winner_id not in participant_ids:
        raise ValidationError(f"Player id={winner_id} did not play game id={game_id}")

    now = utcnow()
    result = session.execute(
        update(Game)
        .where(Game.id == game_id, Game.completed_at.is_(None))
        .values(
            completed_at=now,
            winner_id=winner_id,
            ended_without_winner=ended_without_winner,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.refresh(game)
        if game.winner_id != winner_id or game.ended_without_winner != ended_without_winner:
            raise GameStateError(
                f"Game id={game_id} already completed with winner_id={game.winner_id}"
            )
        logger.warning("Game id=%s was already completed; ignoring duplicate completion", game_id)
        return False

    for participant in participants:
        participant.is_winner = participant.player_id == winner_id
        participant.updated_at = now
    session.flush()
    session.refresh(game)
    logger.info("Game id=%s completed winner_id=%s", game_id, winner_id)
    return True


__all__ = [
    "add_participant",
    "create_game",
    "fetch_participants",
    "fetch_turns",
    "finalize_participant_stats",
    "get_game",
    "get_or_create_player",
    "get_player",
    "mark_game_completed",
    "player_names",
    "record_turn",
    "require_players",
]
