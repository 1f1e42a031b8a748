# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE reporting and review service.

Read-side operations behind the learner's CPE tracker, public certificate
verification, the compliance officer's audit review, and the program
status view for administrators.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.core.config.settings import CPESettings
from src.domains.cpe.credits import ZERO_CREDITS
from src.domains.cpe.identifiers import verify_verification_token
from src.domains.cpe.store import CpeStore
from src.infrastructure.database.models import (
    CertificateStatus,
    CpeAuditLog,
    CpeCertificate,
    VerificationStatus,
)
from src.utils.datetime import utc_now, year_bounds

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = frozenset({VerificationStatus.VERIFIED, VerificationStatus.REJECTED})


class CpeServiceError(Exception):
    """Base exception for CPE service errors."""

    pass


class AuditLogNotFoundError(CpeServiceError):
    """Raised when an audit log entry is not found."""

    pass


class CertificateNotFoundError(CpeServiceError):
    """Raised when a certificate is not found."""

    pass


class InvalidVerificationTransitionError(CpeServiceError):
    """Raised when an audit review does not start from pending."""

    pass


@dataclass
class CpeSummary:
    """Learner-facing CPE totals for the tracker view."""

    learner_id: str
    year: int
    total_credits: Decimal
    year_credits: Decimal
    active_credits: Decimal
    annual_requirement: Decimal
    credits_remaining: Decimal
    is_compliant: bool
    certificate_count: int


@dataclass
class CertificateVerification:
    """Result of checking a certificate number and token."""

    valid: bool
    certificate_number: str
    status: str
    issue_date: datetime
    cpe_credits_awarded: Decimal
    course_id: str


@dataclass
class ProgramStatus:
    """Program-wide CPE figures for administrators."""

    certificates_issued: int
    credits_awarded: Decimal
    pending_reviews: int
    verification_method: str
    auto_verify_completions: bool
    minutes_per_credit: int
    default_passing_score: int


class CpeService:
    """Service for CPE tracking, verification and audit review."""

    def __init__(self, store: CpeStore, settings: CPESettings) -> None:
        """Initialize the service.

        Args:
            store: CPE persistence gateway.
            settings: CPE configuration.
        """
        self.store = store
        self.settings = settings

    async def get_summary(self, learner_id: str, year: int | None = None) -> CpeSummary:
        """Compute a learner's CPE totals.

        Args:
            learner_id: Learner identifier.
            year: Calendar year for the annual figures (defaults to the current UTC year).

        Returns:
            CpeSummary for the learner.
        """
        if year is None:
            year = utc_now().year
        start, end = year_bounds(year)

        total_credits = await self.store.sum_audit_credits(learner_id)
        year_credits = await self.store.sum_audit_credits(learner_id, start=start, end=end)
        active_credits, certificate_count = await self.store.sum_active_certificate_credits(
            learner_id=learner_id, start=start, end=end
        )

        requirement = Decimal(self.settings.annual_requirement)
        remaining = max(requirement - year_credits, ZERO_CREDITS)

        return CpeSummary(
            learner_id=learner_id,
            year=year,
            total_credits=total_credits,
            year_credits=year_credits,
            active_credits=active_credits,
            annual_requirement=requirement,
            credits_remaining=remaining,
            is_compliant=year_credits >= requirement,
            certificate_count=certificate_count,
        )

    async def list_certificates(self, learner_id: str) -> list[CpeCertificate]:
        """List a learner's certificates, newest first."""
        return await self.store.list_certificates(learner_id)

    async def list_audit_logs(self, learner_id: str) -> list[CpeAuditLog]:
        """List a learner's audit trail, newest first."""
        return await self.store.list_audit_logs(learner_id)

    async def verify_certificate(self, certificate_number: str, token: str) -> CertificateVerification:
        """Check a verification token against a certificate.

        The token is checked with the method the certificate was signed with.
        A revoked certificate never verifies, even with a matching token.

        Args:
            certificate_number: Certificate number as printed.
            token: Verification token presented with the certificate.

        Returns:
            CertificateVerification with the outcome.

        Raises:
            CertificateNotFoundError: If no certificate has this number.
        """
        certificate = await self.store.get_certificate_by_number(certificate_number.strip().upper())
        if certificate is None:
            raise CertificateNotFoundError(f"Certificate {certificate_number} not found")

        token_matches = verify_verification_token(
            token,
            certificate.learner_id,
            certificate.course_id,
            certificate.cpe_credits_awarded,
            certificate.issue_date,
            method=certificate.verification_method,
            secret=self.settings.verification_secret.get_secret_value(),
        )

        valid = token_matches and certificate.is_active
        if not valid:
            logger.info(
                "Certificate verification failed: number=%s, token_match=%s, status=%s",
                certificate.certificate_number,
                token_matches,
                certificate.status,
            )

        return CertificateVerification(
            valid=valid,
            certificate_number=certificate.certificate_number,
            status=certificate.status,
            issue_date=certificate.issue_date,
            cpe_credits_awarded=certificate.cpe_credits_awarded,
            course_id=certificate.course_id,
        )

    async def set_verification_status(
        self,
        audit_log_id: str,
        status: VerificationStatus,
        reviewer_id: str,
        notes: str | None = None,
    ) -> CpeAuditLog:
        """Record a compliance review of an audit log entry.

        Rejecting an entry revokes the certificate issued from it.

        Args:
            audit_log_id: Audit log entry ID.
            status: VERIFIED or REJECTED.
            reviewer_id: User performing the review.
            notes: Optional reviewer notes.

        Returns:
            The updated audit log entry.

        Raises:
            AuditLogNotFoundError: If the entry does not exist.
            InvalidVerificationTransitionError: If the entry is not pending
                or the target status is not a review outcome.
        """
        status = VerificationStatus(status)
        if status not in REVIEW_OUTCOMES:
            raise InvalidVerificationTransitionError(
                f"Cannot move an audit log entry to {status.value}"
            )

        entry = await self.store.get_audit_log(audit_log_id)
        if entry is None:
            raise AuditLogNotFoundError(f"Audit log {audit_log_id} not found")

        if not entry.is_pending:
            raise InvalidVerificationTransitionError(
                f"Audit log {audit_log_id} was already reviewed ({entry.verification_status})"
            )

        entry.verification_status = status.value
        entry.verified_by = reviewer_id
        entry.verified_at = utc_now()
        entry.verification_notes = notes

        if status == VerificationStatus.REJECTED:
            await self._revoke_certificate_for(entry)

        await self.store.commit()

        logger.info(
            "Audit log reviewed: id=%s, status=%s, reviewer=%s",
            audit_log_id,
            status.value,
            reviewer_id,
        )

        return entry

    async def _revoke_certificate_for(self, entry: CpeAuditLog) -> None:
        """Revoke the active certificate issued from a rejected entry."""
        certificate = await self.store.get_certificate_for_audit_log(entry.id)
        if certificate is None or not certificate.is_active:
            return

        certificate.status = CertificateStatus.REVOKED.value
        logger.info(
            "Certificate revoked: number=%s, audit_log=%s",
            certificate.certificate_number,
            entry.id,
        )

    async def get_program_status(self) -> ProgramStatus:
        """Get program-wide CPE figures."""
        credits_awarded, certificates_issued = await self.store.sum_active_certificate_credits()
        pending_reviews = await self.store.count_pending_audit_logs()

        return ProgramStatus(
            certificates_issued=certificates_issued,
            credits_awarded=credits_awarded,
            pending_reviews=pending_reviews,
            verification_method=self.settings.verification_method,
            auto_verify_completions=self.settings.auto_verify_completions,
            minutes_per_credit=self.settings.minutes_per_credit,
            default_passing_score=self.settings.default_passing_score,
        )
