# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE audit log and certificate models.

Audit log entries are written once per qualifying completion and only
their verification fields change afterwards. Certificates reference the
audit entry that produced them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin
from src.utils.datetime import utc_now


class AuditAction(str, Enum):
    """Audit log action kinds."""

    COMPLETION = "completion"


class VerificationStatus(str, Enum):
    """Review state of an audit log entry."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class CertificateStatus(str, Enum):
    """Certificate lifecycle state."""

    ACTIVE = "active"
    REVOKED = "revoked"


class CpeAuditLog(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """Record of a CPE-eligible course completion."""

    __tablename__ = "cpe_audit_logs"
    __table_args__ = (
        Index("ix_cpe_audit_logs_learner", "learner_id", "completion_date"),
    )

    learner_id: Mapped[str] = mapped_column(postgresql.UUID(as_uuid=False), nullable=False)
    course_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="RESTRICT"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(
        String(30), nullable=False, default=AuditAction.COMPLETION.value
    )
    cpe_credits_earned: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    completion_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    assessment_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    time_spent_minutes: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value
    )
    verified_by: Mapped[str | None] = mapped_column(postgresql.UUID(as_uuid=False), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    certificate: Mapped[Optional["CpeCertificate"]] = relationship(
        back_populates="audit_log",
        uselist=False,
        lazy="raise",
    )

    @property
    def is_pending(self) -> bool:
        """Check if the entry still awaits review."""
        return self.verification_status == VerificationStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<CpeAuditLog {self.id} credits={self.cpe_credits_earned}>"


class CpeCertificate(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """Durable proof of CPE credit issuance."""

    __tablename__ = "cpe_certificates"
    __table_args__ = (
        Index(
            "uq_cpe_certificates_active_learner_course",
            "learner_id",
            "course_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
    )

    certificate_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    learner_id: Mapped[str] = mapped_column(postgresql.UUID(as_uuid=False), nullable=False)
    course_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="RESTRICT"),
        nullable=False,
    )
    audit_log_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("cpe_audit_logs.id", ondelete="RESTRICT"),
        nullable=False,
    )
    cpe_credits_awarded: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    verification_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    verification_method: Mapped[str] = mapped_column(
        String(10), nullable=False, default="legacy", server_default="legacy"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CertificateStatus.ACTIVE.value
    )
    issue_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    audit_log: Mapped[CpeAuditLog] = relationship(back_populates="certificate", lazy="raise")

    @property
    def is_active(self) -> bool:
        """Check if the certificate is active."""
        return self.status == CertificateStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<CpeCertificate {self.certificate_number}>"
