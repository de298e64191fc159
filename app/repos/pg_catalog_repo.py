"""PostgreSQL implementations of the read-only catalogs: materials,
questions and learner profiles."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import LearnerProfileRow, MaterialRow, QuestionRow
from app.models.learner import LearnerProfile
from app.models.material import Material
from app.models.question import (
    MultipleChoiceQuestion,
    Question,
    QuestionOption,
    SingleChoiceQuestion,
    TrueFalseQuestion,
)


class PgMaterialCatalog:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def course_ids(self) -> list[str]:
        stmt = select(MaterialRow.course_id).distinct().order_by(MaterialRow.course_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_by_course(self, course_id: str) -> list[Material]:
        stmt = (
            select(MaterialRow)
            .where(MaterialRow.course_id == course_id)
            .order_by(MaterialRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_material(r) for r in rows]


class PgQuestionBank:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_active(self) -> list[Question]:
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.is_active.is_(True))
            .order_by(QuestionRow.position, QuestionRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_question(r) for r in rows]


class PgLearnerDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_profile(self, learner_id: str) -> LearnerProfile | None:
        stmt = select(LearnerProfileRow).where(
            LearnerProfileRow.learner_id == learner_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return LearnerProfile(
            learner_id=row.learner_id, name=row.name, gender=row.gender
        )


def _row_to_material(row: MaterialRow) -> Material:
    return Material(
        id=row.id,
        course_id=row.course_id,
        course_name=row.course_name or "",
        type=row.type,
        title=row.title,
        position=row.position,
    )


def _row_to_question(row: QuestionRow) -> Question:
    common = {
        "id": row.id,
        "title": row.title,
        "content": row.content,
        "course_id": row.course_id,
        "position": row.position,
        "is_active": row.is_active,
    }
    if row.type == "true_false":
        return TrueFalseQuestion(correct_answer=bool(row.correct_answer), **common)
    options = tuple(
        QuestionOption(
            id=o["id"],
            text=o["text"],
            is_correct=bool(o.get("is_correct", False)),
            order=int(o.get("order", 0)),
        )
        for o in row.options or []
    )
    if row.type == "single_choice":
        return SingleChoiceQuestion(options=options, **common)
    if row.type == "multiple_choice":
        return MultipleChoiceQuestion(options=options, **common)
    raise ValueError(f"unknown question type {row.type!r} for question {row.id}")
