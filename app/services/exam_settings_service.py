"""Exam settings store.

A single configuration record.  ``get()`` creates the defaults on first
access; ``update()`` validates every supplied field before anything is
written, so a rejected update leaves the stored record untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from app.core.clock import utc_timestamp
from app.core.errors import ValidationError
from app.models.exam import (
    NUMBER_OF_QUESTIONS_RANGE,
    PASSING_SCORE_RANGE,
    REVERIFICATION_INTERVAL_RANGE,
    TIME_LIMIT_RANGE,
    ExamSettings,
)
from app.repos.exam_settings_repo import ExamSettingsRepo

logger = logging.getLogger(__name__)

_BOUNDS: dict[str, tuple[int, int]] = {
    "time_limit": TIME_LIMIT_RANGE,
    "number_of_questions": NUMBER_OF_QUESTIONS_RANGE,
    "passing_score": PASSING_SCORE_RANGE,
    "reverification_interval": REVERIFICATION_INTERVAL_RANGE,
}


class ExamSettingsStore:
    def __init__(self, repo: ExamSettingsRepo) -> None:
        self._repo = repo

    async def get(self) -> ExamSettings:
        settings = await self._repo.get()
        if settings is None:
            settings = ExamSettings(updated_at=utc_timestamp())
            await self._repo.save(settings)
            logger.info("Created default exam settings")
        return settings

    async def update(self, changes: Mapping[str, Any], updated_by: str) -> ExamSettings:
        unknown = sorted(set(changes) - set(_BOUNDS))
        if unknown:
            raise ValidationError(
                f"unknown exam setting(s): {', '.join(unknown)}", fields=unknown
            )
        for field, value in changes.items():
            low, high = _BOUNDS[field]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{field} must be an integer", field=field)
            if not low <= value <= high:
                raise ValidationError(
                    f"{field} must be between {low} and {high}", field=field
                )

        current = await self.get()
        updated = replace(
            current, **changes, updated_at=utc_timestamp(), updated_by=updated_by
        )
        await self._repo.save(updated)
        logger.info(
            "Exam settings updated by=%s fields=%s", updated_by, sorted(changes)
        )
        return updated
