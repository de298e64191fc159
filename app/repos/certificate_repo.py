from __future__ import annotations

import asyncio
from typing import Protocol

from app.core.errors import CertificateNumberTakenError, ConflictError
from app.models.certificate import Certificate


class CertificateRepo(Protocol):
    async def get_by_learner(self, learner_id: str) -> Certificate | None: ...
    async def next_number(self) -> int: ...
    async def add(self, certificate: Certificate) -> None:
        """Raise ConflictError if the learner already holds one,
        CertificateNumberTakenError if the number is in use."""
        ...


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._by_learner: dict[str, Certificate] = {}
        self._last_number = 0
        self._number_lock = asyncio.Lock()

    async def get_by_learner(self, learner_id: str) -> Certificate | None:
        return self._by_learner.get(learner_id)

    async def next_number(self) -> int:
        async with self._number_lock:
            highest = max(
                (c.sequence for c in self._by_learner.values()), default=0
            )
            self._last_number = max(self._last_number, highest) + 1
            return self._last_number

    async def add(self, certificate: Certificate) -> None:
        if certificate.learner_id in self._by_learner:
            raise ConflictError(
                "certificate already issued", learner_id=certificate.learner_id
            )
        if any(c.sequence == certificate.sequence for c in self._by_learner.values()):
            raise CertificateNumberTakenError(
                "certificate number already in use", number=certificate.number
            )
        self._by_learner[certificate.learner_id] = certificate
