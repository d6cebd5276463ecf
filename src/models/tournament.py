"""tournaments, tournament_participants and tournament_matches table models."""

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

MATCH_STATUSES = ("pending", "ready", "in_progress", "completed")


class Tournament(Base):
    """Single or double elimination tournament with a fixed power-of-two bracket."""

    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint("game_type > 0", name="ck_tournaments_game_type"),
        CheckConstraint("bracket_size >= 2", name="ck_tournaments_bracket_size"),
        Index("idx_tournaments_status", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum("in_progress", "completed", name="tournament_status", native_enum=False),
        nullable=False,
        default="in_progress",
    )
    format: Mapped[str] = mapped_column(
        Enum(
            "single_elimination",
            "double_elimination",
            name="tournament_format",
            native_enum=False,
        ),
        nullable=False,
    )
    bracket_size: Mapped[int] = mapped_column(Integer, nullable=False)
    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    game_type: Mapped[int] = mapped_column(Integer, nullable=False, default=501)
    win_condition: Mapped[str] = mapped_column(String(16), nullable=False, default="exact")
    scoring_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="per-dart")
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


class TournamentParticipant(Base):
    """A seeded player inside one tournament, with elimination bookkeeping."""

    __tablename__ = "tournament_participants"
    __table_args__ = (
        UniqueConstraint("tournament_id", "player_id", name="uq_tournament_participants_player"),
        UniqueConstraint("tournament_id", "seed", name="uq_tournament_participants_seed"),
        UniqueConstraint(
            "tournament_id",
            "bracket_position",
            name="uq_tournament_participants_position",
        ),
        Index("idx_tournament_participants_player", "player_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id"), nullable=False)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    seed: Mapped[int] = mapped_column(Integer, nullable=False)
    bracket_position: Mapped[int] = mapped_column(Integer, nullable=False)
    eliminated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    eliminated_in_round: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_placement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )


class TournamentMatch(Base):
    """One node of the bracket graph.

    ``round`` is positive in the winners bracket and negative in the losers
    bracket. ``*_next_slot`` is 1 or 2 and names the exact slot of the target
    match the winner/loser is placed in.
    """

    __tablename__ = "tournament_matches"
    __table_args__ = (
        UniqueConstraint(
            "tournament_id",
            "round",
            "match_number",
            name="uq_tournament_matches_position",
        ),
        CheckConstraint(
            "winner_next_slot IS NULL OR winner_next_slot IN (1, 2)",
            name="ck_tournament_matches_winner_slot",
        ),
        CheckConstraint(
            "loser_next_slot IS NULL OR loser_next_slot IN (1, 2)",
            name="ck_tournament_matches_loser_slot",
        ),
        Index("idx_tournament_matches_tournament_round", "tournament_id", "round"),
        Index("idx_tournament_matches_game", "game_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id"), nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    match_number: Mapped[int] = mapped_column(Integer, nullable=False)
    player1_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    player2_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    player1_bye: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    player2_bye: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winner_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*MATCH_STATUSES, name="tournament_match_status", native_enum=False),
        nullable=False,
        default="pending",
    )
    winner_next_match_id: Mapped[int | None] = mapped_column(
        ForeignKey("tournament_matches.id"),
        nullable=True,
    )
    winner_next_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    loser_next_match_id: Mapped[int | None] = mapped_column(
        ForeignKey("tournament_matches.id"),
        nullable=True,
    )
    loser_next_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
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
