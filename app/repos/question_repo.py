from __future__ import annotations

from typing import Protocol

from app.models.question import Question


class QuestionBank(Protocol):
    async def list_active(self) -> list[Question]:
        """Active questions in stable catalog order (position, then id)."""
        ...


class InMemoryQuestionBank:
    def __init__(self) -> None:
        self._questions: dict[str, Question] = {}

    def add(self, question: Question) -> None:
        if question.id in self._questions:
            raise ValueError("question id already exists")
        self._questions[question.id] = question

    async def list_active(self) -> list[Question]:
        rows = [q for q in self._questions.values() if q.is_active]
        return sorted(rows, key=lambda q: (q.position, q.id))
