"""recent_games_summary table model (materialized per-game summary)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class RecentGameSummary(Base):
    """One row per completed game with its participant totals folded in."""

    __tablename__ = "recent_games_summary"
    __table_args__ = (Index("idx_recent_games_summary_created_at", "created_at"),)

    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), primary_key=True, autoincrement=False)
    game_type: Mapped[int] = mapped_column(Integer, nullable=False)
    win_condition: Mapped[str] = mapped_column(String(16), nullable=False)
    scoring_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    winner_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    player_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_darts: Mapped[int] = mapped_column(Integer, nullable=False)
    total_turns: Mapped[int] = mapped_column(Integer, nullable=False)
    players_with_180s: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    refreshed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
