"""Storage-free darts statistics, ranking and competition logic."""

from domain.errors import (
    DartsStatsError,
    GameStateError,
    IdempotencyConflict,
    MatchStateError,
    ReferentialIntegrityError,
    TopologyError,
    ValidationError,
)
from domain.leaderboard import Dimension
from domain.turns import TurnInput

__all__ = [
    "DartsStatsError",
    "Dimension",
    "GameStateError",
    "IdempotencyConflict",
    "MatchStateError",
    "ReferentialIntegrityError",
    "TopologyError",
    "TurnInput",
    "ValidationError",
]
