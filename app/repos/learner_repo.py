from __future__ import annotations

from typing import Protocol

from app.models.learner import LearnerProfile


class LearnerDirectory(Protocol):
    async def get_profile(self, learner_id: str) -> LearnerProfile | None: ...


class InMemoryLearnerDirectory:
    def __init__(self) -> None:
        self._profiles: dict[str, LearnerProfile] = {}

    def add(self, profile: LearnerProfile) -> None:
        self._profiles[profile.learner_id] = profile

    async def get_profile(self, learner_id: str) -> LearnerProfile | None:
        return self._profiles.get(learner_id)
