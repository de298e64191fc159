"""Answer checking and scoring.

Pure functions; no I/O.  ``is_correct`` dispatches over the closed
``Question`` union so a new question type cannot slip through ungraded.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import assert_never

from app.core.clock import round_half_up
from app.models.exam import GradedAnswer, SubmittedAnswer
from app.models.question import (
    MultipleChoiceQuestion,
    Question,
    SingleChoiceQuestion,
    TrueFalseQuestion,
    correct_answer_of,
)


def is_correct(question: Question, answer: object) -> bool:
    match question:
        case TrueFalseQuestion():
            # "true" or 1 is not a boolean answer.
            return isinstance(answer, bool) and answer == question.correct_answer
        case SingleChoiceQuestion():
            return isinstance(answer, str) and answer == question.correct_option_id
        case MultipleChoiceQuestion():
            if not isinstance(answer, list | tuple | set | frozenset):
                return False
            if not all(isinstance(a, str) for a in answer):
                return False
            return set(answer) == question.correct_option_ids
        case _:
            assert_never(question)


def grade_answer(question: Question, submitted: SubmittedAnswer | None) -> GradedAnswer:
    options = () if isinstance(question, TrueFalseQuestion) else question.options
    if submitted is None or submitted.answer is None:
        return GradedAnswer(
            question_id=question.id,
            question_content=question.content,
            question_type=question.type,
            answer=None,
            answered_at=None,
            is_correct=False,
            points_earned=0,
            examinee_answered=False,
            correct_answer=correct_answer_of(question),
            options=options,
        )
    correct = is_correct(question, submitted.answer)
    answer = submitted.answer
    if isinstance(answer, tuple | set | frozenset):
        answer = sorted(answer)
    return GradedAnswer(
        question_id=question.id,
        question_content=question.content,
        question_type=question.type,
        answer=answer,
        answered_at=submitted.answered_at,
        is_correct=correct,
        points_earned=1 if correct else 0,
        examinee_answered=True,
        correct_answer=correct_answer_of(question),
        options=options,
    )


@dataclass(frozen=True, slots=True)
class GradeResult:
    answers: tuple[GradedAnswer, ...]
    score: int
    percentage: int
    passed: bool


def grade(
    questions: Sequence[Question],
    answers: Mapping[str, SubmittedAnswer],
    *,
    number_of_questions: int,
    passing_score: int,
) -> GradeResult:
    """Grade every question of the assembled set, answered or not.

    The percentage denominator is the configured question count, not the
    number answered (nor the number of questions actually available).
    """
    graded = tuple(grade_answer(q, answers.get(q.id)) for q in questions)
    score = sum(a.points_earned for a in graded)
    percentage = (
        round_half_up(score / number_of_questions * 100) if number_of_questions else 0
    )
    return GradeResult(
        answers=graded,
        score=score,
        percentage=percentage,
        passed=percentage >= passing_score,
    )
