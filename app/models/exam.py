from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from app.core.clock import round_half_up
from app.models.question import QuestionOption

# Inclusive bounds enforced by ExamSettingsStore.update().
TIME_LIMIT_RANGE = (1, 480)
NUMBER_OF_QUESTIONS_RANGE = (1, 100)
PASSING_SCORE_RANGE = (0, 100)
REVERIFICATION_INTERVAL_RANGE = (1, 60)


@dataclass(frozen=True, slots=True)
class ExamSettings:
    """The single exam configuration record."""

    time_limit: int = 60  # minutes
    number_of_questions: int = 20
    passing_score: int = 70  # percentage
    reverification_interval: int = 15  # minutes between identity re-checks
    updated_at: int | None = None
    updated_by: str = "system"


@dataclass(frozen=True, slots=True)
class SubmittedAnswer:
    question_id: str
    answer: bool | str | list[str] | None
    answered_at: int | None = None


@dataclass(frozen=True, slots=True)
class GradedAnswer:
    """One question of a graded submission, snapshotted for later review."""

    question_id: str
    question_content: str
    question_type: str  # true_false|single_choice|multiple_choice
    answer: bool | str | list[str] | None
    answered_at: int | None
    is_correct: bool
    points_earned: int
    examinee_answered: bool
    correct_answer: bool | str | list[str] | None
    options: tuple[QuestionOption, ...] = ()


@dataclass(frozen=True, slots=True)
class ExamHistory:
    """Immutable record of one graded submission."""

    id: UUID
    examinee_id: str
    examinee_name: str
    exam_id: str | None
    answers: tuple[GradedAnswer, ...]
    score: int
    total_questions: int
    percentage: int
    passed: bool
    passing_score: int
    time_allotted: int  # seconds
    time_spent: int  # seconds
    submitted_at: int
    graded_at: int

    @staticmethod
    def new(
        *,
        examinee_id: str,
        examinee_name: str,
        exam_id: str | None,
        answers: tuple[GradedAnswer, ...],
        score: int,
        total_questions: int,
        percentage: int,
        passed: bool,
        passing_score: int,
        time_allotted: int,
        time_spent: int,
        submitted_at: int,
        graded_at: int,
    ) -> ExamHistory:
        return ExamHistory(
            id=uuid4(),
            examinee_id=examinee_id,
            examinee_name=examinee_name,
            exam_id=exam_id,
            answers=answers,
            score=score,
            total_questions=total_questions,
            percentage=percentage,
            passed=passed,
            passing_score=passing_score,
            time_allotted=time_allotted,
            time_spent=time_spent,
            submitted_at=submitted_at,
            graded_at=graded_at,
        )

    @property
    def grade_classification(self) -> str:
        if self.percentage >= 90:
            return "A+"
        if self.percentage >= 80:
            return "A"
        if self.percentage >= 70:
            return "B"
        if self.percentage >= 60:
            return "C"
        return "F"

    @property
    def time_efficiency(self) -> int:
        if self.time_allotted <= 0:
            return 0
        return round_half_up(self.time_spent / self.time_allotted * 100)


@dataclass(frozen=True, slots=True)
class ExamStats:
    total_exams: int = 0
    passed_exams: int = 0
    average_score: float = 0.0
    average_percentage: float = 0.0
    best_score: int = 0
    best_percentage: int = 0
    total_time_spent: int = 0
    total_time_allotted: int = 0
