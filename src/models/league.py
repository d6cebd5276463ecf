"""leagues, league_participants and league_matches table models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class League(Base):
    """Round-robin league with a configurable points system."""

    __tablename__ = "leagues"
    __table_args__ = (
        CheckConstraint("game_type > 0", name="ck_leagues_game_type"),
        CheckConstraint("matches_per_pairing IN (1, 2)", name="ck_leagues_matches_per_pairing"),
        Index("idx_leagues_status", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum("in_progress", "completed", name="league_status", native_enum=False),
        nullable=False,
        default="in_progress",
    )
    game_type: Mapped[int] = mapped_column(Integer, nullable=False, default=501)
    win_condition: Mapped[str] = mapped_column(String(16), nullable=False, default="exact")
    scoring_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="per-dart")
    matches_per_pairing: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    points_for_win: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    points_for_draw: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    points_for_loss: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winner_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
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


class LeagueParticipant(Base):
    """Per-player standings row; ``leg_difference`` is derived on read."""

    __tablename__ = "league_participants"
    __table_args__ = (
        UniqueConstraint("league_id", "player_id", name="uq_league_participants_player"),
        Index("idx_league_participants_points", "league_id", "points"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id"), nullable=False)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    draws: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    legs_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    legs_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
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


class LeagueMatch(Base):
    """One round-robin fixture between two distinct players."""

    __tablename__ = "league_matches"
    __table_args__ = (
        CheckConstraint("player1_id != player2_id", name="ck_league_matches_different_players"),
        CheckConstraint("pass_number IN (1, 2)", name="ck_league_matches_pass_number"),
        CheckConstraint(
            "NOT (is_draw AND winner_id IS NOT NULL)",
            name="ck_league_matches_draw_has_no_winner",
        ),
        Index("idx_league_matches_league", "league_id"),
        Index("idx_league_matches_players", "player1_id", "player2_id"),
        Index("idx_league_matches_game", "game_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id"), nullable=False)
    player1_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    player2_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    fixture_round: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pass_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        Enum("pending", "in_progress", "completed", name="league_match_status", native_enum=False),
        nullable=False,
        default="pending",
    )
    winner_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    is_draw: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    player1_legs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    player2_legs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    game_id: Mapped[int | None] = mapped_column(ForeignKey("games.id"), nullable=True)
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
