"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in app/models/.
Repos convert between SQLAlchemy rows and domain dataclasses.
Timestamps are unix seconds (BigInteger).
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base

# --- Enrollments and progress ledgers ---


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|completed|suspended|cancelled
    enrolled_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_accessed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    completion_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    exam_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # [{"material_name": str, "progress": int}, ...]
    video_progress: Mapped[list[dict]] = mapped_column(
        JSONB, nullable=False, default=list
    )
    document_progress: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list
    )
    lecture_progress: Mapped[list[dict]] = mapped_column(
        JSONB, nullable=False, default=list
    )

    __table_args__ = (
        UniqueConstraint(
            "learner_id", "course_id", name="uq_enrollments_learner_course"
        ),
    )


# --- Catalog (read-only for the engine) ---


class MaterialRow(Base):
    __tablename__ = "materials"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    course_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_name: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(32), nullable=False)  # video|document
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class QuestionRow(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # true_false|single_choice|multiple_choice
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    course_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    correct_answer: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    # [{"id", "text", "is_correct", "order"}, ...]
    options: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)


class LearnerProfileRow(Base):
    __tablename__ = "learner_profiles"

    learner_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str] = mapped_column(
        String(16), nullable=False, default="unspecified"
    )  # male|female|other|unspecified


# --- Exam ---


class ExamSettingsRow(Base):
    """Singleton row (id=1)."""

    __tablename__ = "exam_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    time_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    number_of_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False)
    reverification_interval: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    updated_by: Mapped[str] = mapped_column(
        String(128), nullable=False, default="system"
    )


class ExamHistoryRow(Base):
    __tablename__ = "exam_histories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    examinee_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    examinee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    exam_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    answers: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False)
    time_allotted: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    graded_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


# --- Certificates ---


class CertificateRow(Base):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    number: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    issue_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    issued_by: Mapped[str] = mapped_column(String(128), nullable=False)

    __table_args__ = (
        UniqueConstraint("learner_id", name="uq_certificates_learner"),
        UniqueConstraint("number", name="uq_certificates_number"),
    )


class CertificateCounterRow(Base):
    """Single-row allocator for certificate numbers (name='certificate')."""

    __tablename__ = "certificate_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
