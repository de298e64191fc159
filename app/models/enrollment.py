from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ENROLLMENT_STATUSES = ("active", "completed", "suspended", "cancelled")

# Enrollments that count toward exam eligibility.
ELIGIBLE_STATUSES = ("active", "completed")

MATERIAL_TYPES = ("video", "document")


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One row of the percentage ledger, keyed by material title."""

    material_name: str
    progress: int


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A learner's relationship to one course, carrying its progress ledgers.

    ``video_progress`` is the percentage ledger, ``document_progress`` the
    presence ledger.  ``lecture_progress`` is the legacy combined ledger and
    mirrors ``video_progress`` for older readers.

    ``completion_rate`` and ``exam_eligible`` are derived; the ledgers are
    the source of truth.
    """

    id: UUID
    learner_id: str
    course_id: str
    course_name: str = ""
    status: str = "active"  # active|completed|suspended|cancelled
    enrolled_at: int = 0
    last_accessed_at: int = 0
    completed_at: int | None = None
    completion_rate: int = 0
    exam_eligible: bool = False
    video_progress: tuple[LedgerEntry, ...] = ()
    document_progress: tuple[str, ...] = ()
    lecture_progress: tuple[LedgerEntry, ...] = ()

    @staticmethod
    def new(
        *,
        learner_id: str,
        course_id: str,
        course_name: str = "",
        enrolled_at: int,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            learner_id=learner_id,
            course_id=course_id,
            course_name=course_name,
            enrolled_at=enrolled_at,
            last_accessed_at=enrolled_at,
        )

    def video_entry(self, material_name: str) -> LedgerEntry | None:
        for entry in self.video_progress:
            if entry.material_name == material_name:
                return entry
        return None

    def has_document(self, material_name: str) -> bool:
        return material_name in self.document_progress
