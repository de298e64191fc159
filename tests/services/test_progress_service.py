from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import replace
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from app.core.errors import NotFoundError, ValidationError
from app.models.enrollment import Enrollment, LedgerEntry
from app.models.material import Material
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.material_repo import InMemoryMaterialCatalog
from app.services.eligibility_service import EligibilityService
from app.services.progress_service import (
    ProgressService,
    apply_progress,
    completion_rate,
)


def _ledger(*values: int) -> tuple[LedgerEntry, ...]:
    return tuple(
        LedgerEntry(material_name=f"v{i}", progress=v) for i, v in enumerate(values)
    )


def _service() -> tuple[ProgressService, InMemoryEnrollmentRepo]:
    repo = InMemoryEnrollmentRepo()
    return ProgressService(repo), repo


def _enrolled(service: ProgressService, learner: str = "L1", course: str = "C1"):
    return asyncio.run(service.enroll(learner, course, "Course One")).enrollment


class _YieldingRepo(InMemoryEnrollmentRepo):
    """Gives up the event loop between reading a record and writing it back."""

    async def save(self, enrollment: Enrollment) -> None:
        await asyncio.sleep(0)
        await super().save(enrollment)


class _TransactionalRepo(InMemoryEnrollmentRepo):
    """Tracks savepoints and fails the learner-wide flag update.

    A failure raised outside any savepoint marks the whole unit of work as
    aborted, the way PostgreSQL refuses to commit after an error.
    """

    def __init__(self) -> None:
        super().__init__()
        self.depth = 0
        self.rolled_back_savepoints = 0
        self.transaction_aborted = False

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        self.depth += 1
        try:
            yield
        except Exception:
            self.rolled_back_savepoints += 1
            raise
        finally:
            self.depth -= 1

    async def set_exam_eligible(
        self, learner_id: str, eligible: bool, statuses: Iterable[str]
    ) -> int:
        if self.depth == 0:
            self.transaction_aborted = True
        raise RuntimeError("deadlock detected")


def _catalog(*titles: str) -> InMemoryMaterialCatalog:
    catalog = InMemoryMaterialCatalog()
    for title in titles:
        catalog.add(
            Material.new(
                course_id="C1", course_name="Course One", type="video", title=title
            )
        )
    return catalog


# ---- completion rate ----


def test_completion_rate_is_mean_of_video_ledger() -> None:
    assert completion_rate(_ledger(100, 50, 0)) == 50


def test_completion_rate_rounds_half_up() -> None:
    # (100 + 100 + 50 + 0) / 4 = 62.5
    assert completion_rate(_ledger(100, 100, 50, 0)) == 63


def test_completion_rate_empty_ledger_is_zero() -> None:
    assert completion_rate(()) == 0


# ---- apply_progress (pure) ----


def test_apply_video_progress_appends_to_both_ledgers() -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    updated = apply_progress(e, "Intro", "video", 40, now=10)
    assert updated is not None
    assert updated.video_progress == (LedgerEntry("Intro", 40),)
    assert updated.lecture_progress == (LedgerEntry("Intro", 40),)
    assert updated.completion_rate == 40
    assert updated.last_accessed_at == 10
    assert updated.status == "active"


def test_apply_video_progress_overwrites_existing_entry() -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    e = apply_progress(e, "Intro", "video", 40, now=10)
    e = apply_progress(e, "Intro", "video", 30, now=11)
    assert e is not None
    # Not monotonic below 100: the last value wins.
    assert e.video_progress == (LedgerEntry("Intro", 30),)


def test_apply_video_progress_is_frozen_at_100() -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    e = apply_progress(e, "Intro", "video", 100, now=10)
    assert e is not None
    assert apply_progress(e, "Intro", "video", 20, now=11) is None


def test_apply_video_progress_completes_at_100() -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    e = apply_progress(e, "Intro", "video", 100, now=10)
    assert e is not None
    assert e.status == "completed"
    assert e.completed_at == 10
    assert e.completion_rate == 100


def test_apply_document_progress_is_idempotent() -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    e = apply_progress(e, "Slides", "document", None, now=10)
    assert e is not None
    assert e.document_progress == ("Slides",)
    assert apply_progress(e, "Slides", "document", None, now=11) is None


def test_apply_document_progress_does_not_change_rate() -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    e = apply_progress(e, "Intro", "video", 50, now=10)
    e = apply_progress(e, "Slides", "document", None, now=11)
    assert e is not None
    assert e.completion_rate == 50


@pytest.mark.parametrize("value", [-1, 101, 50.5, True, "50", None])
def test_apply_video_progress_rejects_bad_values(value: object) -> None:
    e = Enrollment.new(learner_id="L1", course_id="C1", enrolled_at=1)
    with pytest.raises(ValidationError):
        apply_progress(e, "Intro", "video", value, now=10)  # type: ignore[arg-type]


# ---- enroll ----


def test_enroll_creates_then_reports_existing() -> None:
    service, _ = _service()
    first = asyncio.run(service.enroll("L1", "C1", "Course One"))
    second = asyncio.run(service.enroll("L1", "C1", "Course One"))
    assert first.created is True
    assert second.created is False
    assert second.enrollment.id == first.enrollment.id


def test_enroll_initial_state() -> None:
    service, _ = _service()
    e = _enrolled(service)
    assert e.status == "active"
    assert e.completion_rate == 0
    assert e.exam_eligible is False
    assert e.video_progress == ()
    assert e.document_progress == ()


def test_enroll_rejects_blank_ids() -> None:
    service, _ = _service()
    with pytest.raises(ValidationError):
        asyncio.run(service.enroll(" ", "C1"))


def test_concurrent_enroll_creates_one_record() -> None:
    service, repo = _service()

    async def _scenario():
        return await asyncio.gather(*(service.enroll("L1", "C1") for _ in range(5)))

    results = asyncio.run(_scenario())
    assert sum(1 for r in results if r.created) == 1
    assert len(asyncio.run(repo.list_by_learner("L1"))) == 1


# ---- record_progress ----


def test_record_progress_three_videos_average() -> None:
    service, _ = _service()
    e = _enrolled(service)
    asyncio.run(service.record_progress(e.id, "v1", "video", 100))
    asyncio.run(service.record_progress(e.id, "v2", "video", 50))
    result = asyncio.run(service.record_progress(e.id, "v3", "video", 0))
    assert result.completion_rate == 50
    assert result.status == "active"
    assert result.skipped is False


def test_record_progress_skip_after_100_leaves_record_unchanged() -> None:
    service, repo = _service()
    e = _enrolled(service)
    asyncio.run(service.record_progress(e.id, "v1", "video", 100))
    before = asyncio.run(repo.get(e.id))
    result = asyncio.run(service.record_progress(e.id, "v1", "video", 10))
    assert result.skipped is True
    assert asyncio.run(repo.get(e.id)) == before


def test_record_progress_unknown_enrollment() -> None:
    service, _ = _service()
    with pytest.raises(NotFoundError):
        asyncio.run(service.record_progress(uuid4(), "v1", "video", 10))


def test_record_progress_other_learner_is_not_found() -> None:
    service, _ = _service()
    e = _enrolled(service, learner="L1")
    with pytest.raises(NotFoundError):
        asyncio.run(service.record_progress(e.id, "v1", "video", 10, learner_id="L2"))


def test_record_progress_rejects_unknown_type() -> None:
    service, _ = _service()
    e = _enrolled(service)
    with pytest.raises(ValidationError):
        asyncio.run(service.record_progress(e.id, "quiz", "quiz"))


def test_record_progress_rejects_blank_title() -> None:
    service, _ = _service()
    e = _enrolled(service)
    with pytest.raises(ValidationError):
        asyncio.run(service.record_progress(e.id, "  ", "document"))


def test_concurrent_progress_on_different_materials_keeps_all_entries() -> None:
    repo = _YieldingRepo()
    service = ProgressService(repo)
    e = _enrolled(service)
    titles = [f"v{i}" for i in range(10)]

    async def _scenario() -> None:
        await asyncio.gather(
            *(service.record_progress(e.id, t, "video", 100) for t in titles)
        )

    asyncio.run(_scenario())
    stored = asyncio.run(repo.get(e.id))
    assert stored is not None
    assert sorted(v.material_name for v in stored.video_progress) == sorted(titles)
    assert stored.completion_rate == 100


def test_record_progress_rechecks_eligibility() -> None:
    repo = InMemoryEnrollmentRepo()
    catalog = InMemoryMaterialCatalog()
    catalog.add(
        Material.new(course_id="C1", course_name="Course One", type="video", title="v1")
    )
    service = ProgressService(repo, EligibilityService(repo, catalog))
    e = asyncio.run(service.enroll("L1", "C1")).enrollment

    result = asyncio.run(service.record_progress(e.id, "v1", "video", 100))

    assert result.enrollment.exam_eligible is True


def test_failed_eligibility_recheck_does_not_fail_progress() -> None:
    class _Broken:
        async def evaluate(self, learner_id: str):
            raise RuntimeError("catalog down")

    repo = InMemoryEnrollmentRepo()
    service = ProgressService(repo, _Broken())  # type: ignore[arg-type]
    e = asyncio.run(service.enroll("L1", "C1")).enrollment

    result = asyncio.run(service.record_progress(e.id, "v1", "video", 60))

    assert result.completion_rate == 60
    stored = asyncio.run(repo.get(e.id))
    assert stored is not None and stored.completion_rate == 60


def test_failed_flag_update_is_contained_in_a_savepoint() -> None:
    repo = _TransactionalRepo()
    service = ProgressService(repo, EligibilityService(repo, _catalog("v1")))
    e = asyncio.run(service.enroll("L1", "C1")).enrollment
    labels = {"effect": "eligibility_recheck"}
    before = REGISTRY.get_sample_value("side_effect_failures_total", labels) or 0.0

    result = asyncio.run(service.record_progress(e.id, "v1", "video", 100))

    assert result.completion_rate == 100
    assert repo.rolled_back_savepoints == 1
    assert repo.transaction_aborted is False
    stored = asyncio.run(repo.get(e.id))
    assert stored is not None
    assert [v.material_name for v in stored.video_progress] == ["v1"]
    assert stored.status == "completed"
    after = REGISTRY.get_sample_value("side_effect_failures_total", labels)
    assert after == before + 1


def test_detach_material_contains_failed_flag_update() -> None:
    repo = _TransactionalRepo()
    service = ProgressService(repo, EligibilityService(repo, _catalog("v1", "v2")))
    e = asyncio.run(service.enroll("L1", "C1")).enrollment
    asyncio.run(service.record_progress(e.id, "v1", "video", 100))
    asyncio.run(service.record_progress(e.id, "v2", "video", 0))

    touched = asyncio.run(service.detach_material("C1", "v2"))

    assert touched == 1
    assert repo.rolled_back_savepoints == 3
    assert repo.transaction_aborted is False
    stored = asyncio.run(repo.get(e.id))
    assert stored is not None and stored.completion_rate == 100


# ---- detach_material ----


def test_detach_material_recomputes_rate() -> None:
    service, repo = _service()
    e = _enrolled(service)
    asyncio.run(service.record_progress(e.id, "v1", "video", 100))
    asyncio.run(service.record_progress(e.id, "old", "video", 0))

    touched = asyncio.run(service.detach_material("C1", "old"))

    stored = asyncio.run(repo.get(e.id))
    assert touched == 1
    assert stored is not None
    assert [v.material_name for v in stored.video_progress] == ["v1"]
    assert [v.material_name for v in stored.lecture_progress] == ["v1"]
    assert stored.completion_rate == 100


def test_detach_material_leaves_status_alone() -> None:
    service, repo = _service()
    e = _enrolled(service)
    asyncio.run(service.record_progress(e.id, "v1", "video", 100))
    completed = asyncio.run(repo.get(e.id))
    assert completed is not None
    asyncio.run(
        repo.save(
            replace(
                completed,
                video_progress=completed.video_progress + (LedgerEntry("x", 0),),
            )
        )
    )

    asyncio.run(service.detach_material("C1", "v1"))

    stored = asyncio.run(repo.get(e.id))
    assert stored is not None
    assert stored.status == "completed"


def test_detach_material_ignores_untouched_enrollments() -> None:
    service, _ = _service()
    _enrolled(service)
    assert asyncio.run(service.detach_material("C1", "missing")) == 0
