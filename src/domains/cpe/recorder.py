# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Completion recording for CPE-eligible courses.

When a learner finishes a course session, CompletionRecorder:

1. ignores courses that are not regulator-approved,
2. converts time spent into credits and ignores zero-credit sessions,
3. writes one audit log entry per learner, course and UTC day,
4. issues a certificate when the assessment score clears the threshold.

The submitted assessment score only counts up to the learner's best
recorded quiz_complete score for the course; without a recorded quiz there
is no certificate.

Steps 3 and 4 commit together. A repeated completion on the same day
returns the existing audit entry instead of writing a second one, and
certifies it when the retake passes and the entry has no certificate yet.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal

from src.core.config.settings import CPESettings
from src.domains.cpe.credits import (
    MAX_SESSION_MINUTES,
    ZERO_CREDITS,
    InvalidEngagementTimeError,
    calculate_cpe_credits,
    format_credits,
)
from src.domains.cpe.gate import best_assessment_score
from src.domains.cpe.identifiers import (
    generate_certificate_number,
    generate_verification_token,
)
from src.domains.cpe.store import (
    ActiveCertificateExistsError,
    CertificateNumberConflictError,
    CpeStore,
    DuplicateCompletionError,
)
from src.infrastructure.database.models import (
    AuditAction,
    CertificateStatus,
    Course,
    CpeAuditLog,
    CpeCertificate,
    InteractionType,
    VerificationStatus,
)
from src.utils.datetime import truncate_to_millis, utc_date, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)


class CompletionRecorderError(Exception):
    """Base exception for completion recording errors."""

    pass


class CertificateIssuanceError(CompletionRecorderError):
    """Raised when no unique certificate number could be generated."""

    pass


@dataclass(frozen=True)
class CompletionMetadata:
    """Requester details kept on the audit trail.

    Attributes:
        ip_address: Client network address.
        user_agent: Client User-Agent header.
    """

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class CompletionResult:
    """Outcome of a recorded completion.

    Attributes:
        audit_log: Audit log entry for the completion.
        certificate: Certificate issued or reused, if the score passed.
        duplicate: True when the completion had already been recorded.
    """

    audit_log: CpeAuditLog
    certificate: CpeCertificate | None = None
    duplicate: bool = False


def completion_idempotency_key(learner_id: str, course_id: str, completed_at: datetime) -> str:
    """Derive the idempotency key for a completion.

    One key per learner, course and UTC calendar day.
    """
    raw = f"{learner_id}:{course_id}:{utc_date(completed_at).isoformat()}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class CompletionRecorder:
    """Writes CPE audit trail entries and certificates on course completion.

    Attributes:
        store: CPE persistence gateway.
        settings: CPE configuration.
    """

    def __init__(self, store: CpeStore, settings: CPESettings) -> None:
        self.store = store
        self.settings = settings

    async def record_completion(
        self,
        learner_id: str,
        course_id: str,
        time_spent_minutes: float | Decimal,
        assessment_score: int | None = None,
        metadata: CompletionMetadata | None = None,
    ) -> CompletionResult | None:
        """Record a course completion.

        Args:
            learner_id: Learner who completed the course.
            course_id: Completed course.
            time_spent_minutes: Engagement time in minutes.
            assessment_score: Final assessment score, if one was taken.
            metadata: Requester details for the audit trail.

        Returns:
            CompletionResult, or None when the course is not CPE-eligible
            or the session earned no credits.

        Raises:
            InvalidEngagementTimeError: If time_spent_minutes is negative or
                longer than one day.
            CertificateIssuanceError: If certificate numbers kept colliding.
        """
        course = await self.store.get_course(course_id)
        if course is None or not course.is_regulator_approved:
            return None

        credits = calculate_cpe_credits(time_spent_minutes, self.settings.minutes_per_credit)
        minutes = Decimal(str(time_spent_minutes))
        if minutes > MAX_SESSION_MINUTES:
            raise InvalidEngagementTimeError(
                f"Time spent must be at most {MAX_SESSION_MINUTES} minutes, "
                f"got {time_spent_minutes!r}"
            )
        if credits == ZERO_CREDITS:
            return None

        completed_at = utc_now()
        metadata = metadata or CompletionMetadata()

        try:
            score = await self._backed_score(learner_id, course.id, assessment_score)
            result = await self._record(
                course=course,
                learner_id=learner_id,
                credits=credits,
                time_spent_minutes=minutes.quantize(Decimal("0.01"), rounding=ROUND_FLOOR),
                assessment_score=score,
                completed_at=completed_at,
                metadata=metadata,
            )
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        return result

    async def _record(
        self,
        course: Course,
        learner_id: str,
        credits: Decimal,
        time_spent_minutes: Decimal,
        assessment_score: int | None,
        completed_at: datetime,
        metadata: CompletionMetadata,
    ) -> CompletionResult:
        key = completion_idempotency_key(learner_id, course.id, completed_at)

        existing = await self.store.get_audit_log_by_idempotency_key(key)
        if existing is not None:
            return await self._duplicate_result(existing, course, assessment_score)

        status = (
            VerificationStatus.VERIFIED
            if self.settings.auto_verify_completions
            else VerificationStatus.PENDING
        )
        entry = CpeAuditLog(
            learner_id=learner_id,
            course_id=course.id,
            action=AuditAction.COMPLETION.value,
            cpe_credits_earned=credits,
            completion_date=completed_at,
            assessment_score=assessment_score,
            time_spent_minutes=time_spent_minutes,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
            verification_status=status.value,
            verified_at=completed_at if self.settings.auto_verify_completions else None,
            idempotency_key=key,
        )

        try:
            audit_log = await self.store.create_audit_log(entry)
        except DuplicateCompletionError:
            # A concurrent request recorded the same completion first
            winner = await self.store.get_audit_log_by_idempotency_key(key)
            if winner is None:
                raise
            return await self._duplicate_result(winner, course, assessment_score)

        logger.info(
            "cpe_completion_recorded",
            audit_log_id=audit_log.id,
            learner_id=learner_id,
            course_id=course.id,
            credits=format_credits(credits),
            verification_status=status.value,
        )

        certificate = None
        if self._passes(course, assessment_score):
            certificate = await self._issue_certificate(audit_log, credits)

        return CompletionResult(audit_log=audit_log, certificate=certificate)

    async def _backed_score(
        self, learner_id: str, course_id: str, assessment_score: int | None
    ) -> int | None:
        """Cap a submitted score at the learner's best recorded quiz score.

        Returns None when no score was submitted or no scored quiz_complete
        exists for the course.
        """
        if assessment_score is None:
            return None

        interactions = await self.store.list_interactions(
            learner_id, course_id, interaction_type=InteractionType.QUIZ_COMPLETE.value
        )
        best = best_assessment_score(interactions)
        if best is None or assessment_score > best:
            logger.warning(
                "cpe_assessment_score_unbacked",
                learner_id=learner_id,
                course_id=course_id,
                submitted_score=assessment_score,
                recorded_score=best,
            )
            return best
        return assessment_score

    def _passes(self, course: Course, assessment_score: int | None) -> bool:
        minimum_score = course.passing_score(self.settings.default_passing_score)
        return assessment_score is not None and assessment_score >= minimum_score

    async def _duplicate_result(
        self,
        audit_log: CpeAuditLog,
        course: Course,
        assessment_score: int | None,
    ) -> CompletionResult:
        """Return an already recorded completion.

        A passing retake certifies the entry if it has no certificate yet,
        unless a reviewer rejected it.
        """
        certificate = await self.store.get_certificate_for_audit_log(audit_log.id)
        logger.info(
            "cpe_completion_duplicate",
            audit_log_id=audit_log.id,
            learner_id=audit_log.learner_id,
            course_id=audit_log.course_id,
        )

        if (
            certificate is None
            and audit_log.verification_status != VerificationStatus.REJECTED.value
            and self._passes(course, assessment_score)
        ):
            certificate = await self._issue_certificate(audit_log, audit_log.cpe_credits_earned)

        return CompletionResult(audit_log=audit_log, certificate=certificate, duplicate=True)

    async def _issue_certificate(self, audit_log: CpeAuditLog, credits: Decimal) -> CpeCertificate:
        """Issue a certificate for a passing completion.

        Reuses the learner's active certificate for the course if one
        exists. Certificate number collisions are retried up to
        settings.certificate_max_attempts times.

        Raises:
            CertificateIssuanceError: If every attempt collided.
        """
        existing = await self.store.get_active_certificate(audit_log.learner_id, audit_log.course_id)
        if existing is not None:
            logger.info(
                "cpe_certificate_reused",
                certificate_number=existing.certificate_number,
                learner_id=audit_log.learner_id,
                course_id=audit_log.course_id,
            )
            return existing

        attempts = self.settings.certificate_max_attempts
        for attempt in range(1, attempts + 1):
            issued_at = truncate_to_millis(utc_now())
            certificate = CpeCertificate(
                certificate_number=generate_certificate_number(
                    self.settings.certificate_prefix, issued_at
                ),
                learner_id=audit_log.learner_id,
                course_id=audit_log.course_id,
                audit_log_id=audit_log.id,
                cpe_credits_awarded=credits,
                verification_hash=generate_verification_token(
                    audit_log.learner_id,
                    audit_log.course_id,
                    credits,
                    issued_at,
                    method=self.settings.verification_method,
                    secret=self.settings.verification_secret.get_secret_value(),
                ),
                verification_method=self.settings.verification_method,
                status=CertificateStatus.ACTIVE.value,
                issue_date=issued_at,
            )

            try:
                created = await self.store.create_certificate(certificate)
            except CertificateNumberConflictError as e:
                logger.warning(
                    "cpe_certificate_number_conflict",
                    certificate_number=e.certificate_number,
                    attempt=attempt,
                    max_attempts=attempts,
                )
                continue
            except ActiveCertificateExistsError as e:
                return e.existing

            logger.info(
                "cpe_certificate_issued",
                certificate_number=created.certificate_number,
                audit_log_id=audit_log.id,
                learner_id=audit_log.learner_id,
                course_id=audit_log.course_id,
                credits=format_credits(credits),
            )
            return created

        raise CertificateIssuanceError(
            f"Could not generate a unique certificate number after {attempts} attempts"
        )
