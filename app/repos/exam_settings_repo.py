from __future__ import annotations

from typing import Protocol

from app.models.exam import ExamSettings


class ExamSettingsRepo(Protocol):
    async def get(self) -> ExamSettings | None: ...
    async def save(self, settings: ExamSettings) -> None: ...


class InMemoryExamSettingsRepo:
    def __init__(self) -> None:
        self._settings: ExamSettings | None = None

    async def get(self) -> ExamSettings | None:
        return self._settings

    async def save(self, settings: ExamSettings) -> None:
        self._settings = settings
