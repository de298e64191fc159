from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_by_learner_course(
        self, learner_id: str, course_id: str
    ) -> Enrollment | None: ...
    async def add_if_absent(
        self, enrollment: Enrollment
    ) -> tuple[Enrollment, bool]: ...
    async def save(self, enrollment: Enrollment) -> None: ...
    def lock(
        self, enrollment_id: UUID
    ) -> AbstractAsyncContextManager[Enrollment | None]: ...
    def savepoint(self) -> AbstractAsyncContextManager[None]: ...
    async def list_by_learner(
        self, learner_id: str, statuses: Iterable[str] | None = None
    ) -> list[Enrollment]: ...
    async def list_by_course(self, course_id: str) -> list[Enrollment]: ...
    async def set_exam_eligible(
        self, learner_id: str, eligible: bool, statuses: Iterable[str]
    ) -> int: ...


class InMemoryEnrollmentRepo:
    """Dict-backed enrollments with one asyncio.Lock per enrollment id.

    ``lock()`` yields the current record while the lock is held; callers
    read, modify and ``save()`` inside the block.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}
        self._by_pair: dict[tuple[str, str], UUID] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, enrollment_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(enrollment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[enrollment_id] = lock
        return lock

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_by_learner_course(
        self, learner_id: str, course_id: str
    ) -> Enrollment | None:
        enrollment_id = self._by_pair.get((learner_id, course_id))
        if enrollment_id is None:
            return None
        return self._by_id.get(enrollment_id)

    async def add_if_absent(self, enrollment: Enrollment) -> tuple[Enrollment, bool]:
        key = (enrollment.learner_id, enrollment.course_id)
        existing_id = self._by_pair.get(key)
        if existing_id is not None:
            return self._by_id[existing_id], False
        self._by_pair[key] = enrollment.id
        self._by_id[enrollment.id] = enrollment
        return enrollment, True

    async def save(self, enrollment: Enrollment) -> None:
        if enrollment.id not in self._by_id:
            raise KeyError("enrollment not found")
        self._by_id[enrollment.id] = enrollment

    @asynccontextmanager
    async def lock(self, enrollment_id: UUID) -> AsyncIterator[Enrollment | None]:
        async with self._lock_for(enrollment_id):
            yield self._by_id.get(enrollment_id)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        # No transaction to protect in memory.
        yield

    async def list_by_learner(
        self, learner_id: str, statuses: Iterable[str] | None = None
    ) -> list[Enrollment]:
        wanted = set(statuses) if statuses is not None else None
        rows = [
            e
            for e in self._by_id.values()
            if e.learner_id == learner_id and (wanted is None or e.status in wanted)
        ]
        return sorted(rows, key=lambda e: e.enrolled_at)

    async def list_by_course(self, course_id: str) -> list[Enrollment]:
        return [e for e in self._by_id.values() if e.course_id == course_id]

    async def set_exam_eligible(
        self, learner_id: str, eligible: bool, statuses: Iterable[str]
    ) -> int:
        wanted = set(statuses)
        ids = [
            e.id
            for e in self._by_id.values()
            if e.learner_id == learner_id and e.status in wanted
        ]
        for enrollment_id in ids:
            async with self._lock_for(enrollment_id):
                current = self._by_id[enrollment_id]
                self._by_id[enrollment_id] = replace(current, exam_eligible=eligible)
        return len(ids)
