"""leaderboard_entries table model (materialized leaderboard projection)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class LeaderboardEntry(Base):
    """One ranked row per (dimension, player).

    The stored sort-key values let an incremental refresh re-splice a single
    player without re-reading every player's counters.
    """

    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint("dimension", "rank", name="uq_leaderboard_entries_dimension_rank"),
        UniqueConstraint("dimension", "player_id", name="uq_leaderboard_entries_dimension_player"),
        Index("idx_leaderboard_entries_player", "player_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    dimension: Mapped[str] = mapped_column(String(32), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    primary_value: Mapped[float] = mapped_column(Float, nullable=False)
    tiebreak_value: Mapped[float] = mapped_column(Float, nullable=False)
    secondary_tiebreak_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    refreshed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
