"""Material maintenance.

Progress ledgers are keyed by material title, so removing or renaming a
material in the catalog leaves orphaned ledger entries that still count
toward completion.  This endpoint drops them.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import require_role
from app.api.providers import get_progress_service
from app.models.principal import Principal
from app.services.progress_service import ProgressService

router = APIRouter(prefix="/v1/materials", tags=["materials"])


class DetachOut(BaseModel):
    course_id: str
    title: str
    enrollments_updated: int


@router.delete("/{course_id}/{title}/progress", response_model=DetachOut)
async def detach_material_progress(
    course_id: str,
    title: str,
    _admin: Annotated[Principal, Depends(require_role("admin"))],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> DetachOut:
    touched = await service.detach_material(course_id, title)
    return DetachOut(course_id=course_id, title=title, enrollments_updated=touched)
