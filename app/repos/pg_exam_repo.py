"""PostgreSQL implementations of ExamSettingsRepo and ExamHistoryRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ExamHistoryRow, ExamSettingsRow
from app.models.exam import ExamHistory, ExamSettings, GradedAnswer
from app.models.question import QuestionOption

_SETTINGS_ROW_ID = 1


class PgExamSettingsRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self) -> ExamSettings | None:
        stmt = select(ExamSettingsRow).where(ExamSettingsRow.id == _SETTINGS_ROW_ID)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return ExamSettings(
            time_limit=row.time_limit,
            number_of_questions=row.number_of_questions,
            passing_score=row.passing_score,
            reverification_interval=row.reverification_interval,
            updated_at=row.updated_at,
            updated_by=row.updated_by,
        )

    async def save(self, settings: ExamSettings) -> None:
        values = {
            "time_limit": settings.time_limit,
            "number_of_questions": settings.number_of_questions,
            "passing_score": settings.passing_score,
            "reverification_interval": settings.reverification_interval,
            "updated_at": settings.updated_at,
            "updated_by": settings.updated_by,
        }
        stmt = (
            pg_insert(ExamSettingsRow)
            .values(id=_SETTINGS_ROW_ID, **values)
            .on_conflict_do_update(index_elements=[ExamSettingsRow.id], set_=values)
        )
        await self._session.execute(stmt)


class PgExamHistoryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, history: ExamHistory) -> None:
        row = ExamHistoryRow(
            id=history.id,
            examinee_id=history.examinee_id,
            examinee_name=history.examinee_name,
            exam_id=history.exam_id,
            answers=[_answer_to_json(a) for a in history.answers],
            score=history.score,
            total_questions=history.total_questions,
            percentage=history.percentage,
            passed=history.passed,
            passing_score=history.passing_score,
            time_allotted=history.time_allotted,
            time_spent=history.time_spent,
            submitted_at=history.submitted_at,
            graded_at=history.graded_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def get(self, history_id: UUID) -> ExamHistory | None:
        stmt = select(ExamHistoryRow).where(ExamHistoryRow.id == history_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_history(row)

    async def list_by_examinee(
        self, examinee_id: str, *, offset: int = 0, limit: int | None = None
    ) -> list[ExamHistory]:
        stmt = (
            select(ExamHistoryRow)
            .where(ExamHistoryRow.examinee_id == examinee_id)
            .order_by(
                ExamHistoryRow.submitted_at.desc(), ExamHistoryRow.graded_at.desc()
            )
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_history(r) for r in rows]

    async def count_by_examinee(self, examinee_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(ExamHistoryRow)
            .where(ExamHistoryRow.examinee_id == examinee_id)
        )
        return int((await self._session.execute(stmt)).scalar_one())


def _answer_to_json(answer: GradedAnswer) -> dict:
    return {
        "question_id": answer.question_id,
        "question_content": answer.question_content,
        "question_type": answer.question_type,
        "answer": answer.answer,
        "answered_at": answer.answered_at,
        "is_correct": answer.is_correct,
        "points_earned": answer.points_earned,
        "examinee_answered": answer.examinee_answered,
        "correct_answer": answer.correct_answer,
        "options": [
            {"id": o.id, "text": o.text, "is_correct": o.is_correct, "order": o.order}
            for o in answer.options
        ],
    }


def _answer_from_json(raw: dict) -> GradedAnswer:
    return GradedAnswer(
        question_id=raw["question_id"],
        question_content=raw.get("question_content", ""),
        question_type=raw["question_type"],
        answer=raw.get("answer"),
        answered_at=raw.get("answered_at"),
        is_correct=bool(raw["is_correct"]),
        points_earned=int(raw["points_earned"]),
        examinee_answered=bool(raw["examinee_answered"]),
        correct_answer=raw.get("correct_answer"),
        options=tuple(QuestionOption(**o) for o in raw.get("options", [])),
    )


def _row_to_history(row: ExamHistoryRow) -> ExamHistory:
    return ExamHistory(
        id=row.id,
        examinee_id=row.examinee_id,
        examinee_name=row.examinee_name,
        exam_id=row.exam_id,
        answers=tuple(_answer_from_json(a) for a in row.answers or []),
        score=row.score,
        total_questions=row.total_questions,
        percentage=row.percentage,
        passed=row.passed,
        passing_score=row.passing_score,
        time_allotted=row.time_allotted,
        time_spent=row.time_spent,
        submitted_at=row.submitted_at,
        graded_at=row.graded_at,
    )
