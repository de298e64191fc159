"""Progress ledger manager.

Each enrollment carries three ledgers keyed by material title:

- ``video_progress``: percentage per video (0-100).  The only input to
  the completion rate.
- ``document_progress``: titles of documents opened at least once.
- ``lecture_progress``: legacy combined ledger, written in lockstep with
  ``video_progress``.

A video that reached 100 is frozen; later events for it are no-ops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from app.core.clock import round_half_up, utc_timestamp
from app.core.errors import NotFoundError, ValidationError
from app.core.metrics import PROGRESS_UPDATES, SIDE_EFFECT_FAILURES
from app.models.enrollment import MATERIAL_TYPES, Enrollment, LedgerEntry
from app.repos.enrollment_repo import EnrollmentRepo
from app.services.eligibility_service import EligibilityService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProgressResult:
    enrollment: Enrollment
    completion_rate: int
    status: str
    skipped: bool


@dataclass(frozen=True, slots=True)
class EnrollmentResult:
    enrollment: Enrollment
    created: bool


def completion_rate(ledger: tuple[LedgerEntry, ...]) -> int:
    """Mean of the percentage ledger, half-up rounded; 0 when empty."""
    if not ledger:
        return 0
    return round_half_up(sum(e.progress for e in ledger) / len(ledger))


def _upsert(
    ledger: tuple[LedgerEntry, ...], material_name: str, progress: int
) -> tuple[LedgerEntry, ...]:
    entry = LedgerEntry(material_name=material_name, progress=progress)
    for i, existing in enumerate(ledger):
        if existing.material_name == material_name:
            return ledger[:i] + (entry,) + ledger[i + 1 :]
    return ledger + (entry,)


def _check_video_value(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("video progress must be an integer", value=value)
    if not 0 <= value <= 100:
        raise ValidationError("video progress must be between 0 and 100", value=value)
    return value


def apply_progress(
    enrollment: Enrollment,
    material_title: str,
    material_type: str,
    value: int | None,
    *,
    now: int,
) -> Enrollment | None:
    """Return the updated enrollment, or None when the event is a no-op."""
    if material_type == "video":
        progress = _check_video_value(value)
        entry = enrollment.video_entry(material_title)
        if entry is not None and entry.progress == 100:
            return None
        updated = replace(
            enrollment,
            video_progress=_upsert(enrollment.video_progress, material_title, progress),
            lecture_progress=_upsert(
                enrollment.lecture_progress, material_title, progress
            ),
        )
    elif material_type == "document":
        if enrollment.has_document(material_title):
            return None
        updated = replace(
            enrollment,
            document_progress=enrollment.document_progress + (material_title,),
        )
    else:
        raise ValidationError(
            f"unknown material type {material_type!r}", material_type=material_type
        )

    rate = completion_rate(updated.video_progress)
    if rate == 100:
        updated = replace(updated, status="completed", completed_at=now)
    return replace(updated, completion_rate=rate, last_accessed_at=now)


def _detach(enrollment: Enrollment, material_title: str) -> Enrollment | None:
    video = tuple(
        e for e in enrollment.video_progress if e.material_name != material_title
    )
    lecture = tuple(
        e for e in enrollment.lecture_progress if e.material_name != material_title
    )
    documents = tuple(d for d in enrollment.document_progress if d != material_title)
    if (
        len(video) == len(enrollment.video_progress)
        and len(lecture) == len(enrollment.lecture_progress)
        and len(documents) == len(enrollment.document_progress)
    ):
        return None
    return replace(
        enrollment,
        video_progress=video,
        lecture_progress=lecture,
        document_progress=documents,
        completion_rate=completion_rate(video),
    )


class ProgressService:
    def __init__(
        self,
        enrollments: EnrollmentRepo,
        eligibility: EligibilityService | None = None,
    ) -> None:
        self._enrollments = enrollments
        self._eligibility = eligibility

    async def enroll(
        self, learner_id: str, course_id: str, course_name: str = ""
    ) -> EnrollmentResult:
        """Create the enrollment if absent.  A repeat purchase is not an error."""
        if not learner_id.strip() or not course_id.strip():
            raise ValidationError("learner_id and course_id are required")
        candidate = Enrollment.new(
            learner_id=learner_id,
            course_id=course_id,
            course_name=course_name,
            enrolled_at=utc_timestamp(),
        )
        enrollment, created = await self._enrollments.add_if_absent(candidate)
        if created:
            logger.info(
                "Enrolled learner=%s course=%s enrollment=%s",
                learner_id,
                course_id,
                enrollment.id,
            )
        else:
            logger.info("Already enrolled learner=%s course=%s", learner_id, course_id)
        return EnrollmentResult(enrollment=enrollment, created=created)

    async def list_enrollments(self, learner_id: str) -> list[Enrollment]:
        return await self._enrollments.list_by_learner(learner_id)

    async def record_progress(
        self,
        enrollment_id: UUID,
        material_title: str,
        material_type: str,
        value: int | None = None,
        *,
        learner_id: str | None = None,
    ) -> ProgressResult:
        """Apply one progress event under the enrollment lock.

        With ``learner_id`` set, an enrollment owned by someone else is
        reported as not found.
        """
        if not material_title or not material_title.strip():
            raise ValidationError("material title is required")
        if material_type not in MATERIAL_TYPES:
            raise ValidationError(
                f"unknown material type {material_type!r}", material_type=material_type
            )
        if material_type == "video":
            _check_video_value(value)

        async with self._enrollments.lock(enrollment_id) as enrollment:
            if enrollment is None or (
                learner_id is not None and enrollment.learner_id != learner_id
            ):
                raise NotFoundError(
                    "enrollment not found", enrollment_id=str(enrollment_id)
                )
            updated = apply_progress(
                enrollment, material_title, material_type, value, now=utc_timestamp()
            )
            if updated is not None:
                await self._enrollments.save(updated)

        if updated is None:
            PROGRESS_UPDATES.labels(material_type=material_type, result="skipped").inc()
            logger.info(
                "Progress skipped enrollment=%s material=%r type=%s",
                enrollment_id,
                material_title,
                material_type,
            )
            return ProgressResult(
                enrollment=enrollment,
                completion_rate=enrollment.completion_rate,
                status=enrollment.status,
                skipped=True,
            )

        PROGRESS_UPDATES.labels(material_type=material_type, result="recorded").inc()
        logger.info(
            "Progress recorded enrollment=%s material=%r type=%s rate=%d status=%s",
            enrollment_id,
            material_title,
            material_type,
            updated.completion_rate,
            updated.status,
        )
        # In PostgreSQL the row lock lasts until commit, so the recheck runs
        # in a savepoint and skips rows other transactions hold.
        await self._recheck_eligibility(updated.learner_id)
        refreshed = await self._enrollments.get(updated.id) or updated
        return ProgressResult(
            enrollment=refreshed,
            completion_rate=updated.completion_rate,
            status=updated.status,
            skipped=False,
        )

    async def detach_material(self, course_id: str, material_title: str) -> int:
        """Drop a material title from every enrollment ledger of a course.

        Completion rates are recomputed; status is left as it was.
        Returns the number of enrollments changed.
        """
        touched = 0
        learners: set[str] = set()
        for candidate in await self._enrollments.list_by_course(course_id):
            async with self._enrollments.lock(candidate.id) as enrollment:
                if enrollment is None:
                    continue
                updated = _detach(enrollment, material_title)
                if updated is None:
                    continue
                await self._enrollments.save(updated)
            touched += 1
            learners.add(enrollment.learner_id)
        logger.info(
            "Detached material=%r course=%s enrollments=%d",
            material_title,
            course_id,
            touched,
        )
        for learner_id in sorted(learners):
            await self._recheck_eligibility(learner_id)
        return touched

    async def _recheck_eligibility(self, learner_id: str) -> None:
        if self._eligibility is None:
            return
        try:
            async with self._enrollments.savepoint():
                await self._eligibility.evaluate(learner_id)
        except Exception:
            SIDE_EFFECT_FAILURES.labels(effect="eligibility_recheck").inc()
            logger.exception("Eligibility recheck failed learner=%s", learner_id)
