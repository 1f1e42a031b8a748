# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial CPE schema.

Creates:
- courses: CPE-relevant course attributes
- interactions: Append-only learner interaction stream
- cpe_audit_logs: One row per qualifying completion (unique idempotency key)
- cpe_certificates: Issued certificates (unique number, one active per
  learner and course)

Revision ID: 001_initial_cpe_schema
Revises:
Create Date: 2025-11-03
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_cpe_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Create CPE tables."""

    op.create_table(
        "courses",
        _uuid_pk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("instructor_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column(
            "is_regulator_approved",
            sa.Boolean(),
            server_default="false",
            nullable=False,
        ),
        sa.Column(
            "requires_assessment",
            sa.Boolean(),
            server_default="false",
            nullable=False,
        ),
        sa.Column("minimum_passing_score", sa.Integer(), server_default="70", nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "minimum_passing_score IS NULL OR minimum_passing_score BETWEEN 0 AND 100",
            name="ck_courses_minimum_passing_score",
        ),
    )

    op.create_table(
        "interactions",
        _uuid_pk(),
        sa.Column("learner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("content_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("interaction_type", sa.String(30), nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("time_spent", sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["courses.id"],
            name="fk_interactions_course",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_interactions_learner_course",
        "interactions",
        ["learner_id", "course_id"],
    )

    op.create_table(
        "cpe_audit_logs",
        _uuid_pk(),
        sa.Column("learner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("cpe_credits_earned", sa.Numeric(6, 2), nullable=False),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assessment_score", sa.Integer(), nullable=True),
        sa.Column("time_spent_minutes", sa.Numeric(8, 2), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column(
            "verification_status",
            sa.String(20),
            server_default="pending",
            nullable=False,
        ),
        sa.Column("verified_by", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(64), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["courses.id"],
            name="fk_cpe_audit_logs_course",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("idempotency_key", name="uq_cpe_audit_logs_idempotency_key"),
        sa.CheckConstraint("cpe_credits_earned > 0", name="ck_cpe_audit_logs_credits_positive"),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected')",
            name="ck_cpe_audit_logs_verification_status",
        ),
    )
    op.create_index(
        "ix_cpe_audit_logs_learner",
        "cpe_audit_logs",
        ["learner_id", "completion_date"],
    )

    op.create_table(
        "cpe_certificates",
        _uuid_pk(),
        sa.Column("certificate_number", sa.String(40), nullable=False),
        sa.Column("learner_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("course_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("audit_log_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("cpe_credits_awarded", sa.Numeric(6, 2), nullable=False),
        sa.Column("verification_hash", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["course_id"],
            ["courses.id"],
            name="fk_cpe_certificates_course",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["audit_log_id"],
            ["cpe_audit_logs.id"],
            name="fk_cpe_certificates_audit_log",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("certificate_number", name="uq_cpe_certificates_number"),
        sa.CheckConstraint(
            "status IN ('active', 'revoked')",
            name="ck_cpe_certificates_status",
        ),
    )
    # At most one active certificate per learner and course
    op.create_index(
        "uq_cpe_certificates_active_learner_course",
        "cpe_certificates",
        ["learner_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )


def downgrade() -> None:
    """Drop CPE tables."""
    op.drop_index(
        "uq_cpe_certificates_active_learner_course",
        table_name="cpe_certificates",
    )
    op.drop_table("cpe_certificates")
    op.drop_index("ix_cpe_audit_logs_learner", table_name="cpe_audit_logs")
    op.drop_table("cpe_audit_logs")
    op.drop_index("ix_interactions_learner_course", table_name="interactions")
    op.drop_table("interactions")
    op.drop_table("courses")
