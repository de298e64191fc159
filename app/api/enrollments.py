"""Enrollment creation and per-material progress.

POST /v1/enrollments                            -> 201 new, 200 already enrolled
GET  /v1/enrollments                            -> caller's enrollments
POST /v1/enrollments/{enrollment_id}/progress   -> record one progress event
"""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.dependencies import require_self_or_admin, require_user
from app.api.providers import get_progress_service
from app.models.enrollment import Enrollment
from app.models.principal import Principal
from app.services.progress_service import ProgressService

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


class EnrollIn(BaseModel):
    course_id: str
    course_name: str = ""
    # Admins may enroll someone else (purchase webhooks, support tooling).
    learner_id: str | None = None


class LedgerEntryOut(BaseModel):
    material_name: str
    progress: int


class EnrollmentOut(BaseModel):
    id: UUID
    learner_id: str
    course_id: str
    course_name: str
    status: str
    enrolled_at: int
    last_accessed_at: int
    completed_at: int | None
    completion_rate: int
    exam_eligible: bool
    video_progress: list[LedgerEntryOut]
    document_progress: list[str]
    lecture_progress: list[LedgerEntryOut]


class EnrollResultOut(BaseModel):
    enrollment: EnrollmentOut
    already_enrolled: bool


class ProgressIn(BaseModel):
    material_title: str
    material_type: str  # video|document
    # Left untyped so the ledger manager applies its own rules (no bools,
    # no floats, 0-100) and reports them in one error format.
    progress: Any = None


class ProgressOut(BaseModel):
    completion_rate: int
    status: str
    skipped: bool
    enrollment: EnrollmentOut


def to_enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=e.id,
        learner_id=e.learner_id,
        course_id=e.course_id,
        course_name=e.course_name,
        status=e.status,
        enrolled_at=e.enrolled_at,
        last_accessed_at=e.last_accessed_at,
        completed_at=e.completed_at,
        completion_rate=e.completion_rate,
        exam_eligible=e.exam_eligible,
        video_progress=[
            LedgerEntryOut(material_name=v.material_name, progress=v.progress)
            for v in e.video_progress
        ],
        document_progress=list(e.document_progress),
        lecture_progress=[
            LedgerEntryOut(material_name=v.material_name, progress=v.progress)
            for v in e.lecture_progress
        ],
    )


@router.post(
    "",
    response_model=EnrollResultOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(
    body: EnrollIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> EnrollResultOut:
    learner_id = body.learner_id or principal.user_id
    require_self_or_admin(learner_id, principal)
    result = await service.enroll(learner_id, body.course_id, body.course_name)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return EnrollResultOut(
        enrollment=to_enrollment_out(result.enrollment),
        already_enrolled=not result.created,
    )


@router.get("", response_model=list[EnrollmentOut])
async def list_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> list[EnrollmentOut]:
    enrollments = await service.list_enrollments(principal.user_id)
    return [to_enrollment_out(e) for e in enrollments]


@router.post("/{enrollment_id}/progress", response_model=ProgressOut)
async def record_progress(
    enrollment_id: UUID,
    body: ProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> ProgressOut:
    result = await service.record_progress(
        enrollment_id,
        body.material_title,
        body.material_type,
        body.progress,
        learner_id=None if principal.is_admin() else principal.user_id,
    )
    return ProgressOut(
        completion_rate=result.completion_rate,
        status=result.status,
        skipped=result.skipped,
        enrollment=to_enrollment_out(result.enrollment),
    )
