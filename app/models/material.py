from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Material:
    id: UUID
    course_id: str
    course_name: str
    type: str  # video|document
    title: str
    position: int = 0

    @staticmethod
    def new(
        *,
        course_id: str,
        course_name: str,
        type: str,
        title: str,
        position: int = 0,
    ) -> Material:
        return Material(
            id=uuid4(),
            course_id=course_id,
            course_name=course_name,
            type=type,
            title=title,
            position=position,
        )
