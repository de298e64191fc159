from __future__ import annotations

import asyncio
from dataclasses import replace

from app.models.material import Material
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.material_repo import InMemoryMaterialCatalog
from app.services.eligibility_service import NOT_PURCHASED, EligibilityService
from app.services.progress_service import ProgressService


def _catalog(*course_ids: str) -> InMemoryMaterialCatalog:
    catalog = InMemoryMaterialCatalog()
    for course_id in course_ids:
        catalog.add(
            Material.new(
                course_id=course_id,
                course_name=f"Course {course_id}",
                type="video",
                title="v1",
            )
        )
    return catalog


def _setup(*course_ids: str):
    repo = InMemoryEnrollmentRepo()
    eligibility = EligibilityService(repo, _catalog(*course_ids))
    return repo, eligibility, ProgressService(repo)


def _complete(progress: ProgressService, learner: str, course: str) -> None:
    e = asyncio.run(progress.enroll(learner, course, f"Course {course}")).enrollment
    asyncio.run(progress.record_progress(e.id, "v1", "video", 100))


def test_all_courses_complete_is_eligible() -> None:
    repo, eligibility, progress = _setup("A", "B")
    _complete(progress, "L1", "A")
    _complete(progress, "L1", "B")

    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is True
    assert report.total_courses == 2
    assert report.completed_courses == 2
    assert all(e.exam_eligible for e in asyncio.run(repo.list_by_learner("L1")))


def test_one_course_incomplete_is_ineligible() -> None:
    repo, eligibility, progress = _setup("A", "B")
    _complete(progress, "L1", "A")
    b = asyncio.run(progress.enroll("L1", "B")).enrollment
    asyncio.run(progress.record_progress(b.id, "v1", "video", 80))

    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is False
    rates = {c.course_id: c.completion_rate for c in report.per_course}
    assert rates == {"A": 100, "B": 80}
    assert not any(e.exam_eligible for e in asyncio.run(repo.list_by_learner("L1")))


def test_missing_course_is_not_purchased() -> None:
    _, eligibility, progress = _setup("A", "B")
    _complete(progress, "L1", "A")

    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is False
    missing = next(c for c in report.per_course if c.course_id == "B")
    assert missing.status == NOT_PURCHASED
    assert missing.completion_rate == 0
    assert missing.course_name == "Course B"


def test_empty_catalog_is_never_eligible() -> None:
    _, eligibility, progress = _setup()
    asyncio.run(progress.enroll("L1", "A"))

    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is False
    assert report.total_courses == 0


def test_cancelled_enrollment_does_not_count() -> None:
    repo, eligibility, progress = _setup("A")
    _complete(progress, "L1", "A")
    e = asyncio.run(repo.get_by_learner_course("L1", "A"))
    assert e is not None
    asyncio.run(repo.save(replace(e, status="cancelled")))

    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is False
    assert report.per_course[0].status == NOT_PURCHASED
    # Only active/completed enrollments carry the flag.
    stored = asyncio.run(repo.get(e.id))
    assert stored is not None and stored.exam_eligible is False


def test_enrollment_outside_catalog_is_ignored() -> None:
    _, eligibility, progress = _setup("A")
    _complete(progress, "L1", "A")
    asyncio.run(progress.enroll("L1", "retired-course"))

    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is True
    assert [c.course_id for c in report.per_course] == ["A"]


def test_flag_is_cleared_when_a_new_course_appears() -> None:
    repo = InMemoryEnrollmentRepo()
    catalog = _catalog("A")
    eligibility = EligibilityService(repo, catalog)
    _complete(ProgressService(repo), "L1", "A")
    assert asyncio.run(eligibility.evaluate("L1")).eligible is True

    catalog.add(
        Material.new(course_id="B", course_name="Course B", type="video", title="v1")
    )
    report = asyncio.run(eligibility.evaluate("L1"))

    assert report.eligible is False
    stored = asyncio.run(repo.get_by_learner_course("L1", "A"))
    assert stored is not None and stored.exam_eligible is False


def test_learners_are_evaluated_independently() -> None:
    repo, eligibility, progress = _setup("A")
    _complete(progress, "L1", "A")
    asyncio.run(progress.enroll("L2", "A"))

    assert asyncio.run(eligibility.evaluate("L1")).eligible is True
    assert asyncio.run(eligibility.evaluate("L2")).eligible is False
    l1 = asyncio.run(repo.get_by_learner_course("L1", "A"))
    assert l1 is not None and l1.exam_eligible is True
