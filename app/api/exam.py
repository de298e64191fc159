"""Exam endpoints: eligibility, assembly, submission, history, settings."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from app.api.dependencies import require_role, require_user
from app.api.providers import (
    get_eligibility_service,
    get_exam_service,
    get_settings_store,
)
from app.models.exam import ExamHistory, ExamSettings, ExamStats, SubmittedAnswer
from app.models.principal import Principal
from app.services.eligibility_service import EligibilityReport, EligibilityService
from app.services.exam_service import ExamService
from app.services.exam_settings_service import ExamSettingsStore

router = APIRouter(prefix="/v1/exam", tags=["exam"])


# --- Schemas ---


class CourseEligibilityOut(BaseModel):
    course_id: str
    course_name: str
    completion_rate: int
    status: str


class EligibilityOut(BaseModel):
    eligible: bool
    total_courses: int
    completed_courses: int
    courses: list[CourseEligibilityOut]


class ExamSettingsOut(BaseModel):
    time_limit: int
    number_of_questions: int
    passing_score: int
    reverification_interval: int
    updated_at: int | None
    updated_by: str


class ExamSettingsIn(BaseModel):
    time_limit: int | None = None
    number_of_questions: int | None = None
    passing_score: int | None = None
    reverification_interval: int | None = None


class PublicOptionOut(BaseModel):
    id: str
    text: str
    order: int


class PublicQuestionOut(BaseModel):
    id: str
    type: str
    title: str
    content: str
    options: list[PublicOptionOut]


class AssembledExamOut(BaseModel):
    settings: ExamSettingsOut
    time_limit_seconds: int
    questions: list[PublicQuestionOut]


class AnswerIn(BaseModel):
    question_id: str
    answer: Any = None  # bool | option id | list of option ids
    answered_at: int | None = None


class SubmissionIn(BaseModel):
    examinee_name: str
    exam_id: str | None = None
    answers: list[AnswerIn] = []
    time_spent: Any = None  # seconds; validated by the exam service
    submitted_at: int | None = None


class OptionOut(BaseModel):
    id: str
    text: str
    is_correct: bool
    order: int


class GradedAnswerOut(BaseModel):
    question_id: str
    question_content: str
    question_type: str
    answer: Any
    answered_at: int | None
    is_correct: bool
    points_earned: int
    examinee_answered: bool
    correct_answer: Any
    options: list[OptionOut]


class ExamHistoryOut(BaseModel):
    id: UUID
    examinee_id: str
    examinee_name: str
    exam_id: str | None
    answers: list[GradedAnswerOut]
    score: int
    total_questions: int
    percentage: int
    passed: bool
    passing_score: int
    time_allotted: int
    time_spent: int
    submitted_at: int
    graded_at: int
    grade_classification: str
    time_efficiency: int


class HistoryPageOut(BaseModel):
    items: list[ExamHistoryOut]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ExamStatsOut(BaseModel):
    total_exams: int
    passed_exams: int
    average_score: float
    average_percentage: float
    best_score: int
    best_percentage: int
    total_time_spent: int
    total_time_allotted: int


# --- Converters ---


def _eligibility_out(report: EligibilityReport) -> EligibilityOut:
    return EligibilityOut(
        eligible=report.eligible,
        total_courses=report.total_courses,
        completed_courses=report.completed_courses,
        courses=[
            CourseEligibilityOut(
                course_id=c.course_id,
                course_name=c.course_name,
                completion_rate=c.completion_rate,
                status=c.status,
            )
            for c in report.per_course
        ],
    )


def _settings_out(s: ExamSettings) -> ExamSettingsOut:
    return ExamSettingsOut(
        time_limit=s.time_limit,
        number_of_questions=s.number_of_questions,
        passing_score=s.passing_score,
        reverification_interval=s.reverification_interval,
        updated_at=s.updated_at,
        updated_by=s.updated_by,
    )


def _history_out(h: ExamHistory) -> ExamHistoryOut:
    return ExamHistoryOut(
        id=h.id,
        examinee_id=h.examinee_id,
        examinee_name=h.examinee_name,
        exam_id=h.exam_id,
        answers=[
            GradedAnswerOut(
                question_id=a.question_id,
                question_content=a.question_content,
                question_type=a.question_type,
                answer=a.answer,
                answered_at=a.answered_at,
                is_correct=a.is_correct,
                points_earned=a.points_earned,
                examinee_answered=a.examinee_answered,
                correct_answer=a.correct_answer,
                options=[
                    OptionOut(
                        id=o.id, text=o.text, is_correct=o.is_correct, order=o.order
                    )
                    for o in a.options
                ],
            )
            for a in h.answers
        ],
        score=h.score,
        total_questions=h.total_questions,
        percentage=h.percentage,
        passed=h.passed,
        passing_score=h.passing_score,
        time_allotted=h.time_allotted,
        time_spent=h.time_spent,
        submitted_at=h.submitted_at,
        graded_at=h.graded_at,
        grade_classification=h.grade_classification,
        time_efficiency=h.time_efficiency,
    )


def _stats_out(s: ExamStats) -> ExamStatsOut:
    return ExamStatsOut(
        total_exams=s.total_exams,
        passed_exams=s.passed_exams,
        average_score=s.average_score,
        average_percentage=s.average_percentage,
        best_score=s.best_score,
        best_percentage=s.best_percentage,
        total_time_spent=s.total_time_spent,
        total_time_allotted=s.total_time_allotted,
    )


# --- Eligibility and assembly ---


@router.get("/eligibility", response_model=EligibilityOut)
async def get_eligibility(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EligibilityService, Depends(get_eligibility_service)],
) -> EligibilityOut:
    report = await service.evaluate(principal.user_id)
    return _eligibility_out(report)


@router.get("/questions", response_model=AssembledExamOut)
async def get_exam_questions(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ExamService, Depends(get_exam_service)],
) -> AssembledExamOut:
    exam = await service.assemble_exam(principal.user_id)
    return AssembledExamOut(
        settings=_settings_out(exam.settings),
        time_limit_seconds=exam.time_limit_seconds,
        questions=[
            PublicQuestionOut(
                id=q.id,
                type=q.type,
                title=q.title,
                content=q.content,
                options=[
                    PublicOptionOut(id=o.id, text=o.text, order=o.order)
                    for o in q.options
                ],
            )
            for q in exam.questions
        ],
    )


# --- Submissions and history ---


@router.post(
    "/submissions",
    response_model=ExamHistoryOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_exam(
    body: SubmissionIn,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ExamService, Depends(get_exam_service)],
) -> ExamHistoryOut:
    history = await service.grade_submission(
        principal.user_id,
        body.examinee_name,
        [
            SubmittedAnswer(
                question_id=a.question_id, answer=a.answer, answered_at=a.answered_at
            )
            for a in body.answers
        ],
        body.time_spent,
        exam_id=body.exam_id,
        submitted_at=body.submitted_at,
    )
    return _history_out(history)


@router.get("/histories", response_model=HistoryPageOut)
async def list_histories(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ExamService, Depends(get_exam_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> HistoryPageOut:
    result = await service.list_histories(principal.user_id, page=page, limit=limit)
    return HistoryPageOut(
        items=[_history_out(h) for h in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_prev=result.has_prev,
    )


@router.get("/histories/stats", response_model=ExamStatsOut)
async def get_stats(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ExamService, Depends(get_exam_service)],
) -> ExamStatsOut:
    return _stats_out(await service.examinee_stats(principal.user_id))


@router.get("/histories/{history_id}", response_model=ExamHistoryOut)
async def get_history(
    history_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ExamService, Depends(get_exam_service)],
) -> ExamHistoryOut:
    history = await service.get_history(
        history_id, principal.user_id, is_admin=principal.is_admin()
    )
    return _history_out(history)


# --- Settings ---


@router.get("/settings", response_model=ExamSettingsOut)
async def get_settings(
    _principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[ExamSettingsStore, Depends(get_settings_store)],
) -> ExamSettingsOut:
    return _settings_out(await store.get())


@router.put("/settings", response_model=ExamSettingsOut)
async def update_settings(
    body: ExamSettingsIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    store: Annotated[ExamSettingsStore, Depends(get_settings_store)],
) -> ExamSettingsOut:
    updated = await store.update(
        body.model_dump(exclude_unset=True), updated_by=principal.user_id
    )
    return _settings_out(updated)
