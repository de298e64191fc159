"""Exam eligibility.

A learner may sit the exam once they hold an active or completed
enrollment in every course of the material catalog and each of those
enrollments is at 100% completion.

The decision is written back onto the learner's enrollments as
``exam_eligible``.  That flag is a cache for listing screens only; the
exam gate calls ``evaluate()`` again instead of trusting it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.metrics import ELIGIBILITY_CHECKS
from app.models.enrollment import ELIGIBLE_STATUSES
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.material_repo import MaterialCatalog

logger = logging.getLogger(__name__)

NOT_PURCHASED = "not_purchased"


@dataclass(frozen=True, slots=True)
class CourseEligibility:
    course_id: str
    course_name: str
    completion_rate: int
    status: str  # an enrollment status, or "not_purchased"


@dataclass(frozen=True, slots=True)
class EligibilityReport:
    learner_id: str
    eligible: bool
    per_course: tuple[CourseEligibility, ...]

    @property
    def total_courses(self) -> int:
        return len(self.per_course)

    @property
    def completed_courses(self) -> int:
        return sum(1 for c in self.per_course if c.completion_rate == 100)


class EligibilityService:
    def __init__(self, enrollments: EnrollmentRepo, catalog: MaterialCatalog) -> None:
        self._enrollments = enrollments
        self._catalog = catalog

    async def evaluate(self, learner_id: str) -> EligibilityReport:
        course_ids = await self._catalog.course_ids()
        enrollments = await self._enrollments.list_by_learner(
            learner_id, statuses=ELIGIBLE_STATUSES
        )
        by_course = {e.course_id: e for e in enrollments}

        breakdown: list[CourseEligibility] = []
        for course_id in course_ids:
            enrollment = by_course.get(course_id)
            if enrollment is None:
                breakdown.append(
                    CourseEligibility(
                        course_id=course_id,
                        course_name=await self._course_name(course_id),
                        completion_rate=0,
                        status=NOT_PURCHASED,
                    )
                )
                continue
            breakdown.append(
                CourseEligibility(
                    course_id=course_id,
                    course_name=enrollment.course_name,
                    completion_rate=enrollment.completion_rate,
                    status=enrollment.status,
                )
            )

        # An empty catalog never makes anyone eligible.
        eligible = bool(breakdown) and all(
            c.status != NOT_PURCHASED and c.completion_rate == 100 for c in breakdown
        )

        touched = await self._enrollments.set_exam_eligible(
            learner_id, eligible, ELIGIBLE_STATUSES
        )
        ELIGIBILITY_CHECKS.labels(
            result="eligible" if eligible else "ineligible"
        ).inc()
        logger.info(
            "Eligibility learner=%s eligible=%s courses=%d enrollments_flagged=%d",
            learner_id,
            eligible,
            len(breakdown),
            touched,
        )
        return EligibilityReport(
            learner_id=learner_id, eligible=eligible, per_course=tuple(breakdown)
        )

    async def _course_name(self, course_id: str) -> str:
        materials = await self._catalog.list_by_course(course_id)
        return materials[0].course_name if materials else ""
