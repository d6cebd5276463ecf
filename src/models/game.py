"""games, game_players and turns table models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base

DART_SCORES_TYPE = JSON().with_variant(JSONB(), "postgresql")


class Game(Base):
    """One darts game: configuration plus lifecycle timestamps.

    ``aggregated_at`` is the per-game marker claimed by the aggregate
    maintainer; it is set at most once.
    """

    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("game_type > 0", name="ck_games_game_type"),
        CheckConstraint(
            "completed_at IS NULL OR winner_id IS NOT NULL OR ended_without_winner",
            name="ck_games_completed_has_winner",
        ),
        CheckConstraint(
            "aggregated_at IS NULL OR completed_at IS NOT NULL",
            name="ck_games_aggregated_after_completion",
        ),
        Index("idx_games_completed_at", "completed_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_type: Mapped[int] = mapped_column(Integer, nullable=False)
    win_condition: Mapped[str] = mapped_column(
        Enum("exact", "below", name="win_condition", native_enum=False),
        nullable=False,
    )
    scoring_mode: Mapped[str] = mapped_column(
        Enum("per-dart", "per-turn", name="scoring_mode", native_enum=False),
        nullable=False,
    )
    winner_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    ended_without_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    aggregated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )


class GameParticipant(Base):
    """Game x Player join row carrying the per-game counters."""

    __tablename__ = "game_players"
    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_game_players_game_player"),
        UniqueConstraint("game_id", "player_order", name="uq_game_players_game_order"),
        CheckConstraint("player_order >= 0", name="ck_game_players_order"),
        CheckConstraint(
            "total_turns >= 0 AND total_darts >= 0 AND total_score >= 0 "
            "AND max_dart >= 0 AND max_turn >= 0",
            name="ck_game_players_non_negative",
        ),
        Index("idx_game_players_player", "player_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    player_order: Mapped[int] = mapped_column(Integer, nullable=False)
    starting_score: Mapped[int] = mapped_column(Integer, nullable=False)
    final_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    finish_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    finish_round: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_turns: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_darts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_dart: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_turn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_180s: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_140_plus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checkout_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checkout_successes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_checkout: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )


class Turn(Base):
    """One player's single turn (1-3 darts) within one game."""

    __tablename__ = "turns"
    __table_args__ = (
        UniqueConstraint("game_player_id", "turn_number", name="uq_turns_participant_number"),
        CheckConstraint("turn_number >= 1", name="ck_turns_turn_number"),
        CheckConstraint("round_number >= 0", name="ck_turns_round_number"),
        CheckConstraint("score_before >= 0", name="ck_turns_score_before"),
        CheckConstraint("turn_total >= 0 AND turn_total <= 180", name="ck_turns_turn_total"),
        Index("idx_turns_game_player", "game_player_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_player_id: Mapped[int] = mapped_column(ForeignKey("game_players.id"), nullable=False)
    turn_number: Mapped[int] = mapped_column(Integer, nullable=False)
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    score_before: Mapped[int] = mapped_column(Integer, nullable=False)
    score_after: Mapped[int] = mapped_column(Integer, nullable=False)
    turn_total: Mapped[int] = mapped_column(Integer, nullable=False)
    dart_scores: Mapped[list[int]] = mapped_column(DART_SCORES_TYPE, nullable=False)
    is_busted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_checkout_attempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_successful_checkout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
