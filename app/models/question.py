"""Question bank models.

A question is one of three closed variants.  Grading and the public view
both dispatch with an exhaustive ``match`` over ``Question``; adding a
variant means updating those matches or the type checker flags them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, assert_never
from uuid import uuid4

QUESTION_TYPES = ("true_false", "single_choice", "multiple_choice")


@dataclass(frozen=True, slots=True)
class QuestionOption:
    id: str
    text: str
    is_correct: bool = False
    order: int = 0


def _check_options(kind: str, options: tuple[QuestionOption, ...]) -> int:
    if len(options) < 2:
        raise ValueError(f"{kind} questions must have at least 2 options")
    ids = [o.id for o in options]
    if len(set(ids)) != len(ids):
        raise ValueError(f"{kind} option ids must be unique")
    return sum(1 for o in options if o.is_correct)


@dataclass(frozen=True, slots=True)
class TrueFalseQuestion:
    id: str
    title: str
    content: str
    correct_answer: bool
    course_id: str = ""
    position: int = 0
    is_active: bool = True

    type: ClassVar[str] = "true_false"


@dataclass(frozen=True, slots=True)
class SingleChoiceQuestion:
    id: str
    title: str
    content: str
    options: tuple[QuestionOption, ...]
    course_id: str = ""
    position: int = 0
    is_active: bool = True

    type: ClassVar[str] = "single_choice"

    def __post_init__(self) -> None:
        if _check_options("single_choice", self.options) != 1:
            raise ValueError(
                "single_choice questions must have exactly 1 correct option"
            )

    @property
    def correct_option_id(self) -> str:
        return next(o.id for o in self.options if o.is_correct)


@dataclass(frozen=True, slots=True)
class MultipleChoiceQuestion:
    id: str
    title: str
    content: str
    options: tuple[QuestionOption, ...]
    course_id: str = ""
    position: int = 0
    is_active: bool = True

    type: ClassVar[str] = "multiple_choice"

    def __post_init__(self) -> None:
        if _check_options("multiple_choice", self.options) < 1:
            raise ValueError(
                "multiple_choice questions must have at least 1 correct option"
            )

    @property
    def correct_option_ids(self) -> frozenset[str]:
        return frozenset(o.id for o in self.options if o.is_correct)


Question = TrueFalseQuestion | SingleChoiceQuestion | MultipleChoiceQuestion


def new_question_id() -> str:
    return str(uuid4())


@dataclass(frozen=True, slots=True)
class PublicOption:
    id: str
    text: str
    order: int


@dataclass(frozen=True, slots=True)
class PublicQuestion:
    """What an examinee sees: no correctness flags, no answer key."""

    id: str
    type: str
    title: str
    content: str
    options: tuple[PublicOption, ...] = ()


def to_public(question: Question) -> PublicQuestion:
    match question:
        case TrueFalseQuestion():
            options: tuple[PublicOption, ...] = ()
        case SingleChoiceQuestion() | MultipleChoiceQuestion():
            options = tuple(
                PublicOption(id=o.id, text=o.text, order=o.order)
                for o in sorted(question.options, key=lambda o: o.order)
            )
        case _:
            assert_never(question)
    return PublicQuestion(
        id=question.id,
        type=question.type,
        title=question.title,
        content=question.content,
        options=options,
    )


def correct_answer_of(question: Question) -> bool | str | list[str]:
    """The answer key in submission shape, stored on graded answers for review."""
    match question:
        case TrueFalseQuestion():
            return question.correct_answer
        case SingleChoiceQuestion():
            return question.correct_option_id
        case MultipleChoiceQuestion():
            return sorted(question.correct_option_ids)
        case _:
            assert_never(question)
