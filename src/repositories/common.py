"""Shared SQL expression helpers for repositories."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import case


def utcnow() -> datetime:
    """Naive UTC timestamp matching the ``DateTime(timezone=False)`` columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def increment_values(model: Any, deltas: Mapping[str, int]) -> dict[str, Any]:
    """``col = col + delta`` for every non-zero delta.

    Increments are evaluated by the database so concurrent writers never lose
    an update.
    """
    return {
        field: getattr(model, field) + delta
        for field, delta in deltas.items()
        if delta
    }


def max_values(model: Any, candidates: Mapping[str, int]) -> dict[str, Any]:
    """``col = max(col, value)`` expressed with CASE so it runs on every backend."""
    values: dict[str, Any] = {}
    for field, candidate in candidates.items():
        column = getattr(model, field)
        values[field] = case((column < candidate, candidate), else_=column)
    return values


__all__ = ["increment_values", "max_values", "utcnow"]
