"""Error taxonomy for the statistics and competition engine."""

from __future__ import annotations


class DartsStatsError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(DartsStatsError):
    """A record failed validation and was rejected before persistence."""


class IdempotencyConflict(DartsStatsError):
    """The operation was already applied; callers treat this as a no-op."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} id={entity_id} was already applied")
        self.entity = entity
        self.entity_id = entity_id


class ReferentialIntegrityError(DartsStatsError):
    """A record references a row that does not exist."""

    def __init__(self, entity: str, entity_id: int, *, referenced_by: str | None = None) -> None:
        message = f"{entity} id={entity_id} does not exist"
        if referenced_by is not None:
            message = f"{message} (referenced by {referenced_by})"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id
        self.referenced_by = referenced_by


class TopologyError(DartsStatsError):
    """A bracket or fixture set cannot be built as requested."""


class GameStateError(DartsStatsError):
    """A game is not in the lifecycle state the operation requires."""


class MatchStateError(DartsStatsError):
    """A tournament or league match transition is not allowed."""


__all__ = [
    "DartsStatsError",
    "GameStateError",
    "IdempotencyConflict",
    "MatchStateError",
    "ReferentialIntegrityError",
    "TopologyError",
    "ValidationError",
]
