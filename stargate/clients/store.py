"""
Persistence port used by the star gate services.

The host application supplies an implementation; ``SQLiteStore`` is the one
shipped with this service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional, Protocol, Sequence

Operator = Literal["eq", "lt"]


@dataclass(frozen=True, slots=True)
class Where:
    """A single filter clause; clauses in a query are combined with AND."""

    field: str
    value: Any
    operator: Operator = "eq"

    def matches(self, document: Dict[str, Any]) -> bool:
        current = document.get(self.field)
        if self.operator == "eq":
            return current == self.value
        if self.operator == "lt":
            return current is not None and current < self.value
        raise ValueError(f"Unsupported operator: {self.operator}")


def matches_all(document: Dict[str, Any], where: Iterable[Where]) -> bool:
    return all(clause.matches(document) for clause in where)


class RecordStore(Protocol):
    """Minimal CRUD surface over named collections of documents."""

    async def find_one(
        self, collection: str, where: Sequence[Where]
    ) -> Optional[Dict[str, Any]]: ...

    async def find_many(
        self, collection: str, where: Sequence[Where] = ()
    ) -> List[Dict[str, Any]]: ...

    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update(
        self, collection: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]: ...

    async def delete(self, collection: str, record_id: str) -> None: ...


__all__ = ["Operator", "RecordStore", "Where", "matches_all"]
