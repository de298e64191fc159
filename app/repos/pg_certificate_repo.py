"""PostgreSQL implementation of CertificateRepo.

Numbers come from a single-row counter (``certificate_counters``) bumped
with an upsert; the row lock taken by the upsert serializes concurrent
allocators.  The unique constraint on ``certificates.number`` is the
backstop: a collision surfaces as CertificateNumberTakenError and the
service retries with a fresh number.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import CertificateNumberTakenError, ConflictError
from app.db.tables import CertificateCounterRow, CertificateRow
from app.models.certificate import Certificate

_COUNTER_NAME = "certificate"


class PgCertificateRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_learner(self, learner_id: str) -> Certificate | None:
        stmt = select(CertificateRow).where(CertificateRow.learner_id == learner_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def next_number(self) -> int:
        # Seed from existing certificates so a fresh counter never reissues.
        highest = (
            select(func.coalesce(func.max(CertificateRow.sequence), 0) + 1)
        ).scalar_subquery()
        stmt = (
            pg_insert(CertificateCounterRow)
            .values(name=_COUNTER_NAME, value=highest)
            .on_conflict_do_update(
                index_elements=[CertificateCounterRow.name],
                set_={"value": CertificateCounterRow.value + 1},
            )
            .returning(CertificateCounterRow.value)
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            learner_id=certificate.learner_id,
            sequence=certificate.sequence,
            number=certificate.number,
            name=certificate.name,
            gender=certificate.gender,
            start_date=certificate.start_date,
            end_date=certificate.end_date,
            issue_date=certificate.issue_date,
            issued_by=certificate.issued_by,
        )
        # Savepoint so a constraint violation leaves the outer transaction
        # (and the counter bump) usable for a retry.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError as exc:
            constraint = _constraint_name(exc)
            if constraint == "uq_certificates_number":
                raise CertificateNumberTakenError(
                    "certificate number already in use", number=certificate.number
                ) from exc
            if constraint == "uq_certificates_learner":
                raise ConflictError(
                    "certificate already issued", learner_id=certificate.learner_id
                ) from exc
            raise


def _constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    # asyncpg surfaces the constraint on the wrapped exception instead.
    cause = getattr(exc.orig, "__cause__", None)
    name = getattr(cause, "constraint_name", None)
    if name:
        return name
    message = str(exc.orig)
    for candidate in ("uq_certificates_number", "uq_certificates_learner"):
        if candidate in message:
            return candidate
    return None


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        learner_id=row.learner_id,
        sequence=row.sequence,
        number=row.number,
        name=row.name,
        gender=row.gender,
        start_date=row.start_date,
        end_date=row.end_date,
        issue_date=row.issue_date,
        issued_by=row.issued_by,
    )
