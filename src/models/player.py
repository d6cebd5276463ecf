"""players table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Player(Base):
    """Player identity plus lifetime aggregate counters.

    Counters are only mutated by the aggregate maintainer. Ratios (win rate,
    averages, checkout percentage) are never stored; see ``domain.stats``.
    """

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("name", name="uq_players_name"),
        CheckConstraint(
            "total_games_won <= total_games_played",
            name="ck_players_wins_le_played",
        ),
        CheckConstraint(
            "total_checkout_successes <= total_checkout_attempts",
            name="ck_players_checkouts",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    total_games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_games_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_darts_thrown: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_180s: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_140_plus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_dart_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_turn_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_checkout_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_checkout_successes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_turns: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
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
