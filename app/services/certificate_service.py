"""Certificate issuance and numbering.

Numbers are allocated by the repository's atomic counter, never by
reading the current maximum.  If an insert still collides on the number
(a counter reset, a manual insert), the issuance retries with a fresh
number a bounded number of times.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import partial

from app.core.clock import utc_timestamp
from app.core.errors import (
    CertificateNumberTakenError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.metrics import (
    CERTIFICATE_NUMBER_RETRIES,
    CERTIFICATES_ISSUED,
    SIDE_EFFECT_FAILURES,
)
from app.db.engine import AfterCommit
from app.models.certificate import Certificate, CertificateOverrides
from app.models.enrollment import Enrollment
from app.repos.certificate_repo import CertificateRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.learner_repo import LearnerDirectory
from app.services.notifications import Notifier

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 5

NOTIFICATION_TITLE = "Certificate issued"
NOTIFICATION_MESSAGE = "Your completion certificate has been issued. Please review it."


def certificate_period(enrollments: list[Enrollment]) -> tuple[int, int]:
    """Default (start, end) for a certificate.

    start: earliest enrollment.  end: latest completion among completed
    enrollments, falling back to the latest enrollment.
    """
    start = min(e.enrolled_at for e in enrollments)
    completions = [
        e.completed_at
        for e in enrollments
        if e.status == "completed" and e.completed_at is not None
    ]
    if completions:
        return start, max(completions)
    return start, max(e.enrolled_at for e in enrollments)


class CertificateService:
    def __init__(
        self,
        *,
        certificates: CertificateRepo,
        enrollments: EnrollmentRepo,
        learners: LearnerDirectory,
        notifier: Notifier | None = None,
        after_commit: AfterCommit | None = None,
    ) -> None:
        self._certificates = certificates
        self._enrollments = enrollments
        self._learners = learners
        self._notifier = notifier
        self._after_commit = after_commit

    async def issue(
        self,
        learner_id: str,
        issued_by: str,
        overrides: CertificateOverrides | None = None,
    ) -> Certificate:
        if await self._certificates.get_by_learner(learner_id) is not None:
            raise ConflictError("certificate already issued", learner_id=learner_id)

        profile = await self._learners.get_profile(learner_id)
        if profile is None:
            raise NotFoundError("learner not found", learner_id=learner_id)

        enrollments = await self._enrollments.list_by_learner(learner_id)
        if not enrollments:
            raise ValidationError(
                "learner has no enrolled courses", learner_id=learner_id
            )

        start_date, end_date = certificate_period(enrollments)
        if overrides is not None:
            if overrides.start_date is not None:
                start_date = overrides.start_date
            if overrides.end_date is not None:
                end_date = overrides.end_date
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date")

        certificate = await self._insert_with_fresh_number(
            learner_id=learner_id,
            name=profile.name,
            gender=profile.gender,
            start_date=start_date,
            end_date=end_date,
            issued_by=issued_by,
        )
        CERTIFICATES_ISSUED.inc()
        logger.info(
            "Certificate issued learner=%s number=%s by=%s",
            learner_id,
            certificate.number,
            issued_by,
        )
        # The learner hears about it only once the certificate is stored.
        await self._on_commit(partial(self._notify, certificate))
        return certificate

    async def _on_commit(self, callback: Callable[[], Awaitable[None]]) -> None:
        if self._after_commit is None:
            await callback()
        else:
            self._after_commit(callback)

    async def _insert_with_fresh_number(self, **fields) -> Certificate:
        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            sequence = await self._certificates.next_number()
            certificate = Certificate.new(
                sequence=sequence, issue_date=utc_timestamp(), **fields
            )
            try:
                await self._certificates.add(certificate)
            except CertificateNumberTakenError:
                CERTIFICATE_NUMBER_RETRIES.inc()
                logger.warning(
                    "Certificate number %s taken, retrying (attempt %d/%d)",
                    certificate.number,
                    attempt,
                    MAX_NUMBER_ATTEMPTS,
                )
                continue
            return certificate
        raise ConflictError(
            "could not allocate a certificate number",
            attempts=MAX_NUMBER_ATTEMPTS,
        )

    async def _notify(self, certificate: Certificate) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(
                certificate.learner_id, NOTIFICATION_TITLE, NOTIFICATION_MESSAGE
            )
        except Exception:
            SIDE_EFFECT_FAILURES.labels(effect="notification").inc()
            logger.exception(
                "Certificate notification failed learner=%s", certificate.learner_id
            )

    async def get(self, learner_id: str) -> Certificate:
        certificate = await self._certificates.get_by_learner(learner_id)
        if certificate is None:
            raise NotFoundError("certificate not found", learner_id=learner_id)
        return certificate

    async def has(self, learner_id: str) -> bool:
        return await self._certificates.get_by_learner(learner_id) is not None
