# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistence for the CPE domain.

CpeStore is the single gateway between CPE logic and the database. The
gate and recorder only depend on its methods, so they can be exercised
against an in-memory fake.

Inserts that may hit a unique constraint run inside a SAVEPOINT so a
conflict rolls back only that insert, leaving the surrounding
transaction usable for conflict resolution.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import (
    CertificateStatus,
    Course,
    CpeAuditLog,
    CpeCertificate,
    Interaction,
    VerificationStatus,
)

logger = logging.getLogger(__name__)


class CpeStoreError(Exception):
    """Base exception for CPE store conflicts."""

    pass


class DuplicateCompletionError(CpeStoreError):
    """Raised when an audit log entry with the same idempotency key exists."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(f"Completion already recorded for key {idempotency_key}")
        self.idempotency_key = idempotency_key


class CertificateNumberConflictError(CpeStoreError):
    """Raised when a generated certificate number is already taken."""

    def __init__(self, certificate_number: str) -> None:
        super().__init__(f"Certificate number already exists: {certificate_number}")
        self.certificate_number = certificate_number


class ActiveCertificateExistsError(CpeStoreError):
    """Raised when the learner already holds an active certificate for the course."""

    def __init__(self, existing: CpeCertificate) -> None:
        super().__init__(
            f"Active certificate {existing.certificate_number} already exists "
            f"for learner {existing.learner_id} in course {existing.course_id}"
        )
        self.existing = existing


class CpeStore:
    """Database access for courses, interactions, audit logs and certificates.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the store.

        Args:
            db: Async database session.
        """
        self.db = db

    # =========================================================================
    # Courses and interactions
    # =========================================================================

    async def get_course(self, course_id: str) -> Course | None:
        """Get a course by ID, or None if it does not exist."""
        result = await self.db.execute(select(Course).where(Course.id == course_id))
        return result.scalar_one_or_none()

    async def list_interactions(
        self,
        learner_id: str,
        course_id: str,
        interaction_type: str | None = None,
    ) -> list[Interaction]:
        """List a learner's interactions for a course, newest first.

        Args:
            learner_id: Learner identifier.
            course_id: Course identifier.
            interaction_type: Optional filter on interaction type.

        Returns:
            Interactions ordered by creation time descending.
        """
        conditions = [
            Interaction.learner_id == learner_id,
            Interaction.course_id == course_id,
        ]
        if interaction_type:
            conditions.append(Interaction.interaction_type == interaction_type)

        result = await self.db.execute(
            select(Interaction)
            .where(and_(*conditions))
            .order_by(Interaction.created_at.desc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Audit logs
    # =========================================================================

    async def get_audit_log(self, audit_log_id: str) -> CpeAuditLog | None:
        """Get an audit log entry by ID."""
        result = await self.db.execute(
            select(CpeAuditLog).where(CpeAuditLog.id == audit_log_id)
        )
        return result.scalar_one_or_none()

    async def get_audit_log_by_idempotency_key(self, key: str) -> CpeAuditLog | None:
        """Get the audit log entry recorded under an idempotency key."""
        result = await self.db.execute(
            select(CpeAuditLog).where(CpeAuditLog.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def create_audit_log(self, entry: CpeAuditLog) -> CpeAuditLog:
        """Insert an audit log entry.

        Args:
            entry: Unsaved audit log entry.

        Returns:
            The flushed entry with its ID populated.

        Raises:
            DuplicateCompletionError: If the idempotency key is taken.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(entry)
                await self.db.flush()
        except IntegrityError as e:
            logger.debug("Audit log insert conflict: key=%s", entry.idempotency_key)
            raise DuplicateCompletionError(entry.idempotency_key) from e

        return entry

    async def list_audit_logs(self, learner_id: str) -> list[CpeAuditLog]:
        """List a learner's audit log entries, newest first."""
        result = await self.db.execute(
            select(CpeAuditLog)
            .where(CpeAuditLog.learner_id == learner_id)
            .order_by(CpeAuditLog.completion_date.desc())
        )
        return list(result.scalars().all())

    async def sum_audit_credits(
        self,
        learner_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Decimal:
        """Sum non-rejected credits earned by a learner.

        Args:
            learner_id: Learner identifier.
            start: Inclusive lower bound on completion date.
            end: Exclusive upper bound on completion date.

        Returns:
            Total credits.
        """
        conditions = [
            CpeAuditLog.learner_id == learner_id,
            CpeAuditLog.verification_status != VerificationStatus.REJECTED.value,
        ]
        if start is not None:
            conditions.append(CpeAuditLog.completion_date >= start)
        if end is not None:
            conditions.append(CpeAuditLog.completion_date < end)

        result = await self.db.execute(
            select(func.coalesce(func.sum(CpeAuditLog.cpe_credits_earned), 0)).where(
                and_(*conditions)
            )
        )
        return Decimal(result.scalar_one())

    async def count_pending_audit_logs(self) -> int:
        """Count audit entries awaiting review."""
        result = await self.db.execute(
            select(func.count(CpeAuditLog.id)).where(
                CpeAuditLog.verification_status == VerificationStatus.PENDING.value
            )
        )
        return result.scalar_one()

    # =========================================================================
    # Certificates
    # =========================================================================

    async def get_certificate_by_number(self, certificate_number: str) -> CpeCertificate | None:
        """Get a certificate by its number."""
        result = await self.db.execute(
            select(CpeCertificate).where(
                CpeCertificate.certificate_number == certificate_number
            )
        )
        return result.scalar_one_or_none()

    async def get_certificate_for_audit_log(self, audit_log_id: str) -> CpeCertificate | None:
        """Get the certificate issued from an audit log entry, if any."""
        result = await self.db.execute(
            select(CpeCertificate).where(CpeCertificate.audit_log_id == audit_log_id)
        )
        return result.scalar_one_or_none()

    async def get_active_certificate(self, learner_id: str, course_id: str) -> CpeCertificate | None:
        """Get the learner's active certificate for a course, if any."""
        result = await self.db.execute(
            select(CpeCertificate).where(
                and_(
                    CpeCertificate.learner_id == learner_id,
                    CpeCertificate.course_id == course_id,
                    CpeCertificate.status == CertificateStatus.ACTIVE.value,
                )
            )
        )
        return result.scalar_one_or_none()

    async def create_certificate(self, certificate: CpeCertificate) -> CpeCertificate:
        """Insert a certificate.

        Args:
            certificate: Unsaved certificate.

        Returns:
            The flushed certificate.

        Raises:
            CertificateNumberConflictError: If the number is already taken.
            ActiveCertificateExistsError: If the learner already holds an
                active certificate for the course.
            IntegrityError: For any other constraint violation.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(certificate)
                await self.db.flush()
        except IntegrityError:
            if await self.get_certificate_by_number(certificate.certificate_number):
                raise CertificateNumberConflictError(certificate.certificate_number)

            existing = await self.get_active_certificate(
                certificate.learner_id, certificate.course_id
            )
            if existing is not None:
                raise ActiveCertificateExistsError(existing)
            raise

        return certificate

    async def list_certificates(self, learner_id: str) -> list[CpeCertificate]:
        """List a learner's certificates, newest first."""
        result = await self.db.execute(
            select(CpeCertificate)
            .where(CpeCertificate.learner_id == learner_id)
            .order_by(CpeCertificate.issue_date.desc())
        )
        return list(result.scalars().all())

    async def sum_active_certificate_credits(
        self,
        learner_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[Decimal, int]:
        """Sum credits and count active certificates.

        Args:
            learner_id: Restrict to one learner (all learners when None).
            start: Inclusive lower bound on issue date.
            end: Exclusive upper bound on issue date.

        Returns:
            Tuple of (total credits, certificate count).
        """
        conditions = [CpeCertificate.status == CertificateStatus.ACTIVE.value]
        if learner_id is not None:
            conditions.append(CpeCertificate.learner_id == learner_id)
        if start is not None:
            conditions.append(CpeCertificate.issue_date >= start)
        if end is not None:
            conditions.append(CpeCertificate.issue_date < end)

        result = await self.db.execute(
            select(
                func.coalesce(func.sum(CpeCertificate.cpe_credits_awarded), 0),
                func.count(CpeCertificate.id),
            ).where(and_(*conditions))
        )
        total, count = result.one()
        return Decimal(total), count

    # =========================================================================
    # Transaction control
    # =========================================================================

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.db.commit()

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        await self.db.rollback()
