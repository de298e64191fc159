"""Exam assembly, grading and history.

The assembled exam is deterministic: the first ``number_of_questions``
active questions in catalog order.  Grading re-derives that same set, so
answers for questions outside it are ignored and every question inside
it appears in the graded output.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass
from functools import partial
from typing import Generic, TypeVar
from uuid import UUID

from app.core.clock import utc_timestamp
from app.core.errors import EligibilityDeniedError, NotFoundError, ValidationError
from app.core.metrics import CACHE_OPERATIONS, EXAM_PERCENTAGE, EXAM_SUBMISSIONS
from app.db.engine import AfterCommit
from app.models.exam import ExamHistory, ExamSettings, ExamStats, SubmittedAnswer
from app.models.question import PublicQuestion, Question, to_public
from app.repos.exam_history_repo import ExamHistoryRepo
from app.repos.question_repo import QuestionBank
from app.services.cache import CacheService
from app.services.eligibility_service import EligibilityReport, EligibilityService
from app.services.exam_settings_service import ExamSettingsStore
from app.services.grading import grade

logger = logging.getLogger(__name__)

STATS_CACHE_TTL = 300  # seconds
MAX_PAGE_SIZE = 100

T = TypeVar("T")


def stats_cache_key(learner_id: str) -> str:
    return f"exam-stats:{learner_id}"


@dataclass(frozen=True, slots=True)
class AssembledExam:
    settings: ExamSettings
    questions: tuple[PublicQuestion, ...]
    eligibility: EligibilityReport

    @property
    def time_limit_seconds(self) -> int:
        return self.settings.time_limit * 60


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def compute_stats(histories: Sequence[ExamHistory]) -> ExamStats:
    if not histories:
        return ExamStats()
    count = len(histories)
    return ExamStats(
        total_exams=count,
        passed_exams=sum(1 for h in histories if h.passed),
        average_score=round(sum(h.score for h in histories) / count, 2),
        average_percentage=round(sum(h.percentage for h in histories) / count, 2),
        best_score=max(h.score for h in histories),
        best_percentage=max(h.percentage for h in histories),
        total_time_spent=sum(h.time_spent for h in histories),
        total_time_allotted=sum(h.time_allotted for h in histories),
    )


class ExamService:
    def __init__(
        self,
        *,
        settings: ExamSettingsStore,
        questions: QuestionBank,
        histories: ExamHistoryRepo,
        eligibility: EligibilityService,
        cache: CacheService,
        after_commit: AfterCommit | None = None,
    ) -> None:
        self._settings = settings
        self._questions = questions
        self._histories = histories
        self._eligibility = eligibility
        self._cache = cache
        self._after_commit = after_commit

    async def _on_commit(self, callback: Callable[[], Awaitable[None]]) -> None:
        if self._after_commit is None:
            await callback()
        else:
            self._after_commit(callback)

    async def _exam_questions(self, settings: ExamSettings) -> list[Question]:
        active = await self._questions.list_active()
        return active[: settings.number_of_questions]

    async def assemble_exam(self, learner_id: str) -> AssembledExam:
        # The exam_eligible flag on enrollments may be stale; recompute.
        report = await self._eligibility.evaluate(learner_id)
        if not report.eligible:
            logger.info("Exam denied learner=%s", learner_id)
            raise EligibilityDeniedError(
                "complete every course before taking the exam",
                total_courses=report.total_courses,
                completed_courses=report.completed_courses,
            )
        settings = await self._settings.get()
        questions = await self._exam_questions(settings)
        logger.info(
            "Exam assembled learner=%s questions=%d configured=%d",
            learner_id,
            len(questions),
            settings.number_of_questions,
        )
        return AssembledExam(
            settings=settings,
            questions=tuple(to_public(q) for q in questions),
            eligibility=report,
        )

    async def grade_submission(
        self,
        learner_id: str,
        examinee_name: str,
        answers: Sequence[SubmittedAnswer],
        time_spent: int | None,
        *,
        exam_id: str | None = None,
        submitted_at: int | None = None,
    ) -> ExamHistory:
        if not examinee_name or not examinee_name.strip():
            raise ValidationError("examinee name is required")
        if time_spent is None:
            raise ValidationError("time_spent is required")
        if isinstance(time_spent, bool) or not isinstance(time_spent, int):
            raise ValidationError("time_spent must be an integer number of seconds")
        if time_spent < 0:
            raise ValidationError("time_spent must not be negative")

        settings = await self._settings.get()
        questions = await self._exam_questions(settings)
        # Last answer wins when a question id is submitted twice.
        by_question = {a.question_id: a for a in answers}
        result = grade(
            questions,
            by_question,
            number_of_questions=settings.number_of_questions,
            passing_score=settings.passing_score,
        )

        now = utc_timestamp()
        history = ExamHistory.new(
            examinee_id=learner_id,
            examinee_name=examinee_name,
            exam_id=exam_id,
            answers=result.answers,
            score=result.score,
            total_questions=settings.number_of_questions,
            percentage=result.percentage,
            passed=result.passed,
            passing_score=settings.passing_score,
            time_allotted=settings.time_limit * 60,
            time_spent=time_spent,
            submitted_at=submitted_at if submitted_at is not None else now,
            graded_at=now,
        )
        await self._histories.add(history)
        # Invalidated only once the history is visible to other readers.
        await self._on_commit(partial(self._cache.delete, stats_cache_key(learner_id)))

        EXAM_SUBMISSIONS.labels(passed=str(history.passed).lower()).inc()
        EXAM_PERCENTAGE.observe(history.percentage)
        ignored = len(set(by_question) - {q.id for q in questions})
        logger.info(
            "Exam graded learner=%s history=%s score=%d/%d percentage=%d "
            "passed=%s ignored_answers=%d",
            learner_id,
            history.id,
            history.score,
            history.total_questions,
            history.percentage,
            history.passed,
            ignored,
        )
        return history

    async def list_histories(
        self, learner_id: str, page: int = 1, limit: int = 10
    ) -> Page[ExamHistory]:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        total = await self._histories.count_by_examinee(learner_id)
        items = await self._histories.list_by_examinee(
            learner_id, offset=(page - 1) * limit, limit=limit
        )
        return Page(items=tuple(items), page=page, limit=limit, total=total)

    async def get_history(
        self, history_id: UUID, learner_id: str, *, is_admin: bool = False
    ) -> ExamHistory:
        history = await self._histories.get(history_id)
        # Another learner's history is reported as absent, not forbidden.
        if history is None or (not is_admin and history.examinee_id != learner_id):
            raise NotFoundError("exam history not found", history_id=str(history_id))
        return history

    async def examinee_stats(self, learner_id: str) -> ExamStats:
        key = stats_cache_key(learner_id)
        cached = await self._cache.get(key)
        if cached is not None:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return ExamStats(**json.loads(cached))

        CACHE_OPERATIONS.labels(operation="miss").inc()
        stats = compute_stats(await self._histories.list_by_examinee(learner_id))
        await self._cache.set(key, json.dumps(asdict(stats)), STATS_CACHE_TTL)
        return stats
