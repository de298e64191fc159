"""Certificate issuance (admin) and lookup (self or admin)."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import require_role, require_self_or_admin, require_user
from app.api.providers import get_certificate_service
from app.models.certificate import Certificate, CertificateOverrides
from app.models.principal import Principal
from app.services.certificate_service import CertificateService

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class IssueCertificateIn(BaseModel):
    learner_id: str
    start_date: int | None = None
    end_date: int | None = None


class CertificateOut(BaseModel):
    id: UUID
    learner_id: str
    number: str
    name: str
    gender: str
    start_date: int
    end_date: int
    issue_date: int
    issued_by: str


class CertificateExistsOut(BaseModel):
    learner_id: str
    has_certificate: bool


def _certificate_out(c: Certificate) -> CertificateOut:
    return CertificateOut(
        id=c.id,
        learner_id=c.learner_id,
        number=c.number,
        name=c.name,
        gender=c.gender,
        start_date=c.start_date,
        end_date=c.end_date,
        issue_date=c.issue_date,
        issued_by=c.issued_by,
    )


@router.post(
    "",
    response_model=CertificateOut,
    status_code=status.HTTP_201_CREATED,
)
async def issue_certificate(
    body: IssueCertificateIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> CertificateOut:
    certificate = await service.issue(
        body.learner_id,
        issued_by=principal.user_id,
        overrides=CertificateOverrides(
            start_date=body.start_date, end_date=body.end_date
        ),
    )
    return _certificate_out(certificate)


@router.get("/{learner_id}", response_model=CertificateOut)
async def get_certificate(
    learner_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> CertificateOut:
    require_self_or_admin(learner_id, principal)
    return _certificate_out(await service.get(learner_id))


@router.get("/{learner_id}/exists", response_model=CertificateExistsOut)
async def certificate_exists(
    learner_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> CertificateExistsOut:
    require_self_or_admin(learner_id, principal)
    return CertificateExistsOut(
        learner_id=learner_id, has_certificate=await service.has(learner_id)
    )
