"""Structured results for consistency audits."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class ScopeKind(str, Enum):
    ALL = "all"
    PLAYER = "player"
    GAME = "game"


@dataclass(frozen=True)
class VerificationScope:
    kind: ScopeKind
    entity_id: int | None = None

    @classmethod
    def all(cls) -> VerificationScope:
        return cls(ScopeKind.ALL)

    @classmethod
    def player(cls, player_id: int) -> VerificationScope:
        return cls(ScopeKind.PLAYER, player_id)

    @classmethod
    def game(cls, game_id: int) -> VerificationScope:
        return cls(ScopeKind.GAME, game_id)


@dataclass(frozen=True)
class Discrepancy:
    entity: str
    entity_id: int
    field: str
    expected: int | bool | None
    actual: int | bool | None

    def describe(self) -> str:
        return (
            f"{self.entity} id={self.entity_id} {self.field}: "
            f"expected={self.expected} actual={self.actual}"
        )


@dataclass
class VerificationReport:
    scope: VerificationScope
    checked: dict[str, int] = field(default_factory=dict)
    discrepancies: list[Discrepancy] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.discrepancies

    def count(self, entity: str) -> None:
        self.checked[entity] = self.checked.get(entity, 0) + 1

    def compare(
        self,
        entity: str,
        entity_id: int,
        expected: Mapping[str, int],
        actual: Mapping[str, int],
    ) -> None:
        """Record one discrepancy per differing field."""
        self.count(entity)
        for name, expected_value in expected.items():
            actual_value = actual.get(name)
            if actual_value != expected_value:
                self.discrepancies.append(
                    Discrepancy(entity, entity_id, name, expected_value, actual_value)
                )

    def for_entity(self, entity: str) -> list[Discrepancy]:
        return [item for item in self.discrepancies if item.entity == entity]


__all__ = ["Discrepancy", "ScopeKind", "VerificationReport", "VerificationScope"]
