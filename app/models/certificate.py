from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


def format_certificate_number(sequence: int) -> str:
    """Zero-pad to at least two digits: 1 -> "01", 10 -> "10", 100 -> "100"."""
    return f"{sequence:02d}"


@dataclass(frozen=True, slots=True)
class Certificate:
    """Completion certificate.  At most one per learner.

    ``sequence`` is the numeric form of ``number``; ordering and the next
    allocation use it, never the string.
    """

    id: UUID
    learner_id: str
    sequence: int
    number: str
    name: str
    gender: str
    start_date: int
    end_date: int
    issue_date: int
    issued_by: str

    @staticmethod
    def new(
        *,
        learner_id: str,
        sequence: int,
        name: str,
        gender: str,
        start_date: int,
        end_date: int,
        issue_date: int,
        issued_by: str,
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            learner_id=learner_id,
            sequence=sequence,
            number=format_certificate_number(sequence),
            name=name,
            gender=gender,
            start_date=start_date,
            end_date=end_date,
            issue_date=issue_date,
            issued_by=issued_by,
        )


@dataclass(frozen=True, slots=True)
class CertificateOverrides:
    start_date: int | None = None
    end_date: int | None = None
