"""create engine tables

Revision ID: 3b1e9c07d4a2
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c07d4a2"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("learner_id", sa.String(length=128), nullable=False),
        sa.Column("course_id", sa.String(length=128), nullable=False),
        sa.Column("course_name", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("enrolled_at", sa.BigInteger(), nullable=False),
        sa.Column("last_accessed_at", sa.BigInteger(), nullable=False),
        sa.Column("completed_at", sa.BigInteger(), nullable=True),
        sa.Column("completion_rate", sa.Integer(), nullable=False),
        sa.Column("exam_eligible", sa.Boolean(), nullable=False),
        sa.Column("video_progress", postgresql.JSONB(), nullable=False),
        sa.Column("document_progress", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("lecture_progress", postgresql.JSONB(), nullable=False),
        sa.UniqueConstraint(
            "learner_id", "course_id", name="uq_enrollments_learner_course"
        ),
    )
    op.create_index("ix_enrollments_learner_id", "enrollments", ["learner_id"])
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])

    op.create_table(
        "materials",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("course_id", sa.String(length=128), nullable=False),
        sa.Column("course_name", sa.String(length=500), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_index("ix_materials_course_id", "materials", ["course_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("course_id", sa.String(length=128), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("correct_answer", sa.Boolean(), nullable=True),
        sa.Column("options", postgresql.JSONB(), nullable=False),
    )

    op.create_table(
        "learner_profiles",
        sa.Column("learner_id", sa.String(length=128), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=False),
    )

    op.create_table(
        "exam_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("time_limit", sa.Integer(), nullable=False),
        sa.Column("number_of_questions", sa.Integer(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("reverification_interval", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=False),
    )

    op.create_table(
        "exam_histories",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("examinee_id", sa.String(length=128), nullable=False),
        sa.Column("examinee_name", sa.String(length=255), nullable=False),
        sa.Column("exam_id", sa.String(length=128), nullable=True),
        sa.Column("answers", postgresql.JSONB(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("time_allotted", sa.Integer(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.BigInteger(), nullable=False),
        sa.Column("graded_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_exam_histories_examinee_id", "exam_histories", ["examinee_id"])
    op.create_index(
        "ix_exam_histories_submitted_at", "exam_histories", ["submitted_at"]
    )

    op.create_table(
        "certificates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("learner_id", sa.String(length=128), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("number", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.BigInteger(), nullable=False),
        sa.Column("end_date", sa.BigInteger(), nullable=False),
        sa.Column("issue_date", sa.BigInteger(), nullable=False),
        sa.Column("issued_by", sa.String(length=128), nullable=False),
        sa.UniqueConstraint("learner_id", name="uq_certificates_learner"),
        sa.UniqueConstraint("number", name="uq_certificates_number"),
    )

    op.create_table(
        "certificate_counters",
        sa.Column("name", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("certificate_counters")
    op.drop_table("certificates")
    op.drop_index("ix_exam_histories_submitted_at", table_name="exam_histories")
    op.drop_index("ix_exam_histories_examinee_id", table_name="exam_histories")
    op.drop_table("exam_histories")
    op.drop_table("exam_settings")
    op.drop_table("learner_profiles")
    op.drop_table("questions")
    op.drop_index("ix_materials_course_id", table_name="materials")
    op.drop_table("materials")
    op.drop_index("ix_enrollments_course_id", table_name="enrollments")
    op.drop_index("ix_enrollments_learner_id", table_name="enrollments")
    op.drop_table("enrollments")
