from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.exam import ExamHistory


class ExamHistoryRepo(Protocol):
    async def add(self, history: ExamHistory) -> None: ...
    async def get(self, history_id: UUID) -> ExamHistory | None: ...
    async def list_by_examinee(
        self, examinee_id: str, *, offset: int = 0, limit: int | None = None
    ) -> list[ExamHistory]: ...
    async def count_by_examinee(self, examinee_id: str) -> int: ...


class InMemoryExamHistoryRepo:
    """Append-only; histories are never updated after grading."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, ExamHistory] = {}

    async def add(self, history: ExamHistory) -> None:
        if history.id in self._by_id:
            raise ValueError("exam history already exists")
        self._by_id[history.id] = history

    async def get(self, history_id: UUID) -> ExamHistory | None:
        return self._by_id.get(history_id)

    async def list_by_examinee(
        self, examinee_id: str, *, offset: int = 0, limit: int | None = None
    ) -> list[ExamHistory]:
        # Newest first; insertion order breaks ties on equal timestamps.
        rows = [h for h in self._by_id.values() if h.examinee_id == examinee_id]
        indexed = list(enumerate(rows))
        indexed.sort(key=lambda pair: (pair[1].submitted_at, pair[0]), reverse=True)
        ordered = [h for _, h in indexed]
        end = None if limit is None else offset + limit
        return ordered[offset:end]

    async def count_by_examinee(self, examinee_id: str) -> int:
        return sum(1 for h in self._by_id.values() if h.examinee_id == examinee_id)
