"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EnrollmentRow
from app.models.enrollment import Enrollment, LedgerEntry


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy.

    ``lock()`` takes a row lock (``SELECT ... FOR UPDATE``) that lives until
    the surrounding session commits or rolls back.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(EnrollmentRow.id == enrollment_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def get_by_learner_course(
        self, learner_id: str, course_id: str
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.learner_id == learner_id,
            EnrollmentRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add_if_absent(self, enrollment: Enrollment) -> tuple[Enrollment, bool]:
        stmt = (
            pg_insert(EnrollmentRow)
            .values(**_enrollment_values(enrollment))
            .on_conflict_do_nothing(constraint="uq_enrollments_learner_course")
            .returning(EnrollmentRow.id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        if inserted is not None:
            return enrollment, True
        existing = await self.get_by_learner_course(
            enrollment.learner_id, enrollment.course_id
        )
        if existing is None:
            raise RuntimeError("enrollment insert conflicted but no row found")
        return existing, False

    async def save(self, enrollment: Enrollment) -> None:
        values = _enrollment_values(enrollment)
        values.pop("id")
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment.id)
            .values(**values)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("enrollment not found")

    @asynccontextmanager
    async def lock(self, enrollment_id: UUID) -> AsyncIterator[Enrollment | None]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .with_for_update()
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        yield None if row is None else _row_to_enrollment(row)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Nested transaction: a failure inside rolls back to here only."""
        async with self._session.begin_nested():
            yield

    async def list_by_learner(
        self, learner_id: str, statuses: Iterable[str] | None = None
    ) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.learner_id == learner_id)
        if statuses is not None:
            stmt = stmt.where(EnrollmentRow.status.in_(list(statuses)))
        stmt = stmt.order_by(EnrollmentRow.enrolled_at)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_by_course(self, course_id: str) -> list[Enrollment]:
        # Id order keeps row locks taken across the course in one global order.
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
            .order_by(EnrollmentRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def set_exam_eligible(
        self, learner_id: str, eligible: bool, statuses: Iterable[str]
    ) -> int:
        # Rows locked by another transaction are skipped; the flag is a cache
        # recomputed on read.
        locked = (
            select(EnrollmentRow.id)
            .where(
                EnrollmentRow.learner_id == learner_id,
                EnrollmentRow.status.in_(list(statuses)),
            )
            .order_by(EnrollmentRow.id)
            .with_for_update(skip_locked=True)
        )
        ids = list((await self._session.execute(locked)).scalars().all())
        if not ids:
            return 0
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id.in_(ids))
            .values(exam_eligible=eligible)
        )
        await self._session.execute(stmt)
        return len(ids)


def _ledger_to_json(entries: tuple[LedgerEntry, ...]) -> list[dict]:
    return [
        {"material_name": e.material_name, "progress": e.progress} for e in entries
    ]


def _ledger_from_json(raw: list[dict] | None) -> tuple[LedgerEntry, ...]:
    return tuple(
        LedgerEntry(material_name=d["material_name"], progress=int(d["progress"]))
        for d in raw or []
    )


def _enrollment_values(enrollment: Enrollment) -> dict:
    return {
        "id": enrollment.id,
        "learner_id": enrollment.learner_id,
        "course_id": enrollment.course_id,
        "course_name": enrollment.course_name,
        "status": enrollment.status,
        "enrolled_at": enrollment.enrolled_at,
        "last_accessed_at": enrollment.last_accessed_at,
        "completed_at": enrollment.completed_at,
        "completion_rate": enrollment.completion_rate,
        "exam_eligible": enrollment.exam_eligible,
        "video_progress": _ledger_to_json(enrollment.video_progress),
        "document_progress": list(enrollment.document_progress),
        "lecture_progress": _ledger_to_json(enrollment.lecture_progress),
    }


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        learner_id=row.learner_id,
        course_id=row.course_id,
        course_name=row.course_name or "",
        status=row.status,
        enrolled_at=row.enrolled_at,
        last_accessed_at=row.last_accessed_at,
        completed_at=row.completed_at,
        completion_rate=row.completion_rate,
        exam_eligible=row.exam_eligible,
        video_progress=_ledger_from_json(row.video_progress),
        document_progress=tuple(row.document_progress or ()),
        lecture_progress=_ledger_from_json(row.lecture_progress),
    )
