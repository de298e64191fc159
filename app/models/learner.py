from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LearnerProfile:
    """Snapshot source for certificate name and gender."""

    learner_id: str
    name: str
    gender: str = "unspecified"  # male|female|other|unspecified
