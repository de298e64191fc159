from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.material import Material


class MaterialCatalog(Protocol):
    async def course_ids(self) -> list[str]: ...
    async def list_by_course(self, course_id: str) -> list[Material]: ...


class InMemoryMaterialCatalog:
    """Catalog seeded by tests or a fixture loader; read-only for the engine."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Material] = {}

    def add(self, material: Material) -> None:
        self._by_id[material.id] = material

    async def course_ids(self) -> list[str]:
        # Distinct, in first-seen order.
        return list(dict.fromkeys(m.course_id for m in self._by_id.values()))

    async def list_by_course(self, course_id: str) -> list[Material]:
        rows = [m for m in self._by_id.values() if m.course_id == course_id]
        return sorted(rows, key=lambda m: m.position)
