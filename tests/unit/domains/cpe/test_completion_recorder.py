# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for CPE completion recording."""

import re
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from src.core.config.settings import CPESettings
from src.domains.cpe.credits import InvalidEngagementTimeError
from src.domains.cpe.identifiers import verify_verification_token
from src.domains.cpe.recorder import (
    CertificateIssuanceError,
    CompletionMetadata,
    CompletionRecorder,
    completion_idempotency_key,
)
from src.domains.cpe.store import (
    ActiveCertificateExistsError,
    CertificateNumberConflictError,
    CpeStore,
    DuplicateCompletionError,
)
from src.infrastructure.database.models import (
    Course,
    CpeAuditLog,
    CpeCertificate,
    Interaction,
    InteractionType,
)

CERTIFICATE_PATTERN = re.compile(r"^CPE-[0-9A-Z]+-[0-9A-Z]{6}$")


def _course(approved: bool = True, passing_score: int | None = 70) -> Course:
    return Course(
        id=str(uuid4()),
        title="Audit Fundamentals",
        instructor_id=str(uuid4()),
        is_regulator_approved=approved,
        requires_assessment=True,
        minimum_passing_score=passing_score,
    )


def _persist(obj):
    # Stand-in for flush: populate the server-generated primary key
    if obj.id is None:
        obj.id = str(uuid4())
    return obj


def _existing_audit_log(learner_id: str, course_id: str, status: str = "pending") -> CpeAuditLog:
    return CpeAuditLog(
        id=str(uuid4()),
        learner_id=learner_id,
        course_id=course_id,
        cpe_credits_earned=Decimal("2.00"),
        time_spent_minutes=Decimal("100"),
        verification_status=status,
        idempotency_key="x" * 64,
    )


def _quiz(score: int | None) -> Interaction:
    return Interaction(
        id=str(uuid4()),
        interaction_type=InteractionType.QUIZ_COMPLETE.value,
        score=score,
    )


def _existing_certificate(learner_id: str, course_id: str) -> CpeCertificate:
    return CpeCertificate(
        id=str(uuid4()),
        certificate_number="CPE-ABC123-XYZ789",
        learner_id=learner_id,
        course_id=course_id,
        audit_log_id=str(uuid4()),
        cpe_credits_awarded=Decimal("1.50"),
        verification_hash="0" * 32,
        verification_method="legacy",
        status="active",
    )


@pytest.fixture
def course():
    """Create a regulator-approved course."""
    return _course()


@pytest.fixture
def mock_store(course):
    """Create mock CPE store that persists whatever it is given."""
    store = AsyncMock(spec=CpeStore)
    store.get_course.return_value = course
    store.list_interactions.return_value = [_quiz(100)]
    store.get_audit_log_by_idempotency_key.return_value = None
    store.get_active_certificate.return_value = None
    store.get_certificate_for_audit_log.return_value = None
    store.create_audit_log.side_effect = _persist
    store.create_certificate.side_effect = _persist
    return store


@pytest.fixture
def settings():
    """Default CPE settings."""
    return CPESettings()


@pytest.fixture
def recorder(mock_store, settings):
    """Create completion recorder with mock store."""
    return CompletionRecorder(mock_store, settings)


class TestRecordCompletion:
    """Tests for CompletionRecorder.record_completion."""

    @pytest.mark.asyncio
    async def test_passing_completion_writes_audit_log_and_certificate(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A passing completion records credits and issues a certificate."""
        result = await recorder.record_completion(
            sample_learner_id, course.id, time_spent_minutes=100, assessment_score=90
        )

        assert result is not None
        assert result.duplicate is False
        assert result.audit_log.cpe_credits_earned == Decimal("2.00")
        assert result.audit_log.verification_status == "pending"
        assert result.audit_log.verified_at is None
        assert result.audit_log.assessment_score == 90

        certificate = result.certificate
        assert certificate is not None
        assert certificate.cpe_credits_awarded == Decimal("2.00")
        assert certificate.status == "active"
        assert certificate.audit_log_id == result.audit_log.id
        assert certificate.verification_method == "legacy"
        assert CERTIFICATE_PATTERN.match(certificate.certificate_number)
        mock_store.commit.assert_awaited_once()
        mock_store.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_certificate_token_verifies(self, recorder, course, sample_learner_id):
        """The issued verification hash checks out against the certificate fields."""
        result = await recorder.record_completion(
            sample_learner_id, course.id, time_spent_minutes=75, assessment_score=70
        )

        certificate = result.certificate
        assert verify_verification_token(
            certificate.verification_hash,
            certificate.learner_id,
            certificate.course_id,
            certificate.cpe_credits_awarded,
            certificate.issue_date,
        )

    @pytest.mark.asyncio
    async def test_failing_score_records_without_certificate(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A score below the threshold still earns credits but no certificate."""
        result = await recorder.record_completion(
            sample_learner_id, course.id, time_spent_minutes=100, assessment_score=60
        )

        assert result.audit_log.cpe_credits_earned == Decimal("2.00")
        assert result.certificate is None
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_score_records_without_certificate(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Without an assessment score no certificate is issued."""
        result = await recorder.record_completion(sample_learner_id, course.id, 50)

        assert result.audit_log.cpe_credits_earned == Decimal("1.00")
        assert result.certificate is None
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unset_passing_score_uses_default(
        self, recorder, mock_store, sample_learner_id
    ):
        """A course without a passing score falls back to 70."""
        course = _course(passing_score=None)
        mock_store.get_course.return_value = course

        below = await recorder.record_completion(sample_learner_id, course.id, 60, 69)
        assert below.certificate is None

        above = await recorder.record_completion(sample_learner_id, course.id, 60, 70)
        assert above.certificate is not None

    @pytest.mark.asyncio
    async def test_zero_passing_score_is_respected(self, recorder, mock_store, sample_learner_id):
        """A passing score of zero certifies any submitted score."""
        course = _course(passing_score=0)
        mock_store.get_course.return_value = course

        result = await recorder.record_completion(sample_learner_id, course.id, 60, 0)

        assert result.certificate is not None

    @pytest.mark.asyncio
    async def test_unapproved_course_is_ignored(self, recorder, mock_store, sample_learner_id):
        """Courses without regulator approval record nothing."""
        course = _course(approved=False)
        mock_store.get_course.return_value = course

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result is None
        mock_store.create_audit_log.assert_not_awaited()
        mock_store.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_course_is_ignored(self, recorder, mock_store, sample_learner_id):
        """An unknown course records nothing."""
        mock_store.get_course.return_value = None

        result = await recorder.record_completion(sample_learner_id, str(uuid4()), 100, 95)

        assert result is None
        mock_store.create_audit_log.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_short_session_is_ignored(self, recorder, mock_store, course, sample_learner_id):
        """A session shorter than one credit writes no audit entry."""
        result = await recorder.record_completion(sample_learner_id, course.id, 30, 100)

        assert result is None
        mock_store.create_audit_log.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_negative_time_raises(self, recorder, mock_store, course, sample_learner_id):
        """Negative time spent is rejected before anything is written."""
        with pytest.raises(InvalidEngagementTimeError):
            await recorder.record_completion(sample_learner_id, course.id, -5)

        mock_store.create_audit_log.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes", [1440.01, 500000, 1e30])
    async def test_session_longer_than_a_day_raises(
        self, recorder, mock_store, course, sample_learner_id, minutes
    ):
        """More than a day of engagement is rejected before anything is written."""
        with pytest.raises(InvalidEngagementTimeError):
            await recorder.record_completion(sample_learner_id, course.id, minutes, 90)

        mock_store.create_audit_log.assert_not_awaited()
        mock_store.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_full_day_session_is_recorded(self, recorder, course, sample_learner_id):
        """Exactly one day of engagement is accepted."""
        result = await recorder.record_completion(sample_learner_id, course.id, 1440)

        assert result.audit_log.cpe_credits_earned == Decimal("28.80")
        assert result.audit_log.time_spent_minutes == Decimal("1440.00")

    @pytest.mark.asyncio
    async def test_time_spent_is_stored_to_two_places(self, recorder, course, sample_learner_id):
        """Fractional minutes are truncated to the stored precision."""
        result = await recorder.record_completion(sample_learner_id, course.id, 100.456)

        assert result.audit_log.time_spent_minutes == Decimal("100.45")

    @pytest.mark.asyncio
    async def test_auto_verify_marks_entry_verified(self, mock_store, course, sample_learner_id):
        """With auto-verification enabled entries start out verified."""
        recorder = CompletionRecorder(mock_store, CPESettings(auto_verify_completions=True))

        result = await recorder.record_completion(sample_learner_id, course.id, 100)

        assert result.audit_log.verification_status == "verified"
        assert result.audit_log.verified_at is not None

    @pytest.mark.asyncio
    async def test_metadata_is_stored(self, recorder, course, sample_learner_id):
        """Requester details land on the audit entry."""
        metadata = CompletionMetadata(ip_address="203.0.113.7", user_agent="pytest/1.0")

        result = await recorder.record_completion(
            sample_learner_id, course.id, 100, metadata=metadata
        )

        assert result.audit_log.ip_address == "203.0.113.7"
        assert result.audit_log.user_agent == "pytest/1.0"

    @pytest.mark.asyncio
    async def test_idempotency_key_is_set(self, recorder, course, sample_learner_id):
        """The audit entry carries a 64-character idempotency key."""
        result = await recorder.record_completion(sample_learner_id, course.id, 100)

        assert re.fullmatch(r"[0-9a-f]{64}", result.audit_log.idempotency_key)


class TestAssessmentScoreBacking:
    """Tests for checking submitted scores against recorded quizzes."""

    @pytest.mark.asyncio
    async def test_score_without_recorded_quiz_earns_no_certificate(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A submitted score with no quiz_complete on record certifies nothing."""
        mock_store.list_interactions.return_value = []

        result = await recorder.record_completion(
            sample_learner_id, course.id, time_spent_minutes=1000, assessment_score=100
        )

        assert result.certificate is None
        assert result.audit_log.assessment_score is None
        assert result.audit_log.cpe_credits_earned == Decimal("20.00")
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_score_is_capped_at_recorded_best(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A score above the best recorded quiz counts as the recorded one."""
        mock_store.list_interactions.return_value = [_quiz(40), _quiz(60), _quiz(None)]

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.audit_log.assessment_score == 60
        assert result.certificate is None

    @pytest.mark.asyncio
    async def test_recorded_passing_quiz_backs_certificate(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A submitted score at or below a recorded passing quiz certifies."""
        mock_store.list_interactions.return_value = [_quiz(55), _quiz(85)]

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 80)

        assert result.audit_log.assessment_score == 80
        assert result.certificate is not None
        mock_store.list_interactions.assert_awaited_once_with(
            sample_learner_id,
            course.id,
            interaction_type=InteractionType.QUIZ_COMPLETE.value,
        )

    @pytest.mark.asyncio
    async def test_no_score_skips_history_lookup(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Completions without a score never read interaction history."""
        await recorder.record_completion(sample_learner_id, course.id, 100)

        mock_store.list_interactions.assert_not_awaited()


class TestDuplicateCompletions:
    """Tests for repeated completions on the same day."""

    @pytest.mark.asyncio
    async def test_passing_retake_certifies_existing_entry(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Failing then passing on the same day certifies the day's entry."""
        existing = _existing_audit_log(sample_learner_id, course.id)
        mock_store.get_audit_log_by_idempotency_key.return_value = existing

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 90)

        assert result.duplicate is True
        assert result.audit_log is existing
        assert result.certificate is not None
        assert result.certificate.audit_log_id == existing.id
        assert result.certificate.cpe_credits_awarded == existing.cpe_credits_earned
        mock_store.create_audit_log.assert_not_awaited()
        mock_store.create_certificate.assert_awaited_once()
        mock_store.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_retake_leaves_entry_uncertified(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A same-day retake below the threshold issues nothing."""
        existing = _existing_audit_log(sample_learner_id, course.id)
        mock_store.get_audit_log_by_idempotency_key.return_value = existing

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 60)

        assert result.duplicate is True
        assert result.certificate is None
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_entry_is_not_certified_by_retake(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A reviewer's rejection stands against a passing retake."""
        existing = _existing_audit_log(sample_learner_id, course.id, status="rejected")
        mock_store.get_audit_log_by_idempotency_key.return_value = existing

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.certificate is None
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_insert_certifies_uncertified_winner(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Losing the insert race to an uncertified entry still certifies a pass."""
        winner = _existing_audit_log(sample_learner_id, course.id)
        mock_store.get_audit_log_by_idempotency_key.side_effect = [None, winner]
        mock_store.create_audit_log.side_effect = DuplicateCompletionError("k")

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.audit_log is winner
        assert result.certificate.audit_log_id == winner.id

    @pytest.mark.asyncio
    async def test_existing_key_returns_duplicate(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A completion already recorded today is returned as-is."""
        existing = _existing_audit_log(sample_learner_id, course.id)
        certificate = _existing_certificate(sample_learner_id, course.id)
        mock_store.get_audit_log_by_idempotency_key.return_value = existing
        mock_store.get_certificate_for_audit_log.return_value = certificate

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.duplicate is True
        assert result.audit_log is existing
        assert result.certificate is certificate
        mock_store.create_audit_log.assert_not_awaited()
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_insert_returns_winner(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Losing an insert race returns the entry that won it."""
        winner = _existing_audit_log(sample_learner_id, course.id)
        certificate = _existing_certificate(sample_learner_id, course.id)
        mock_store.get_audit_log_by_idempotency_key.side_effect = [None, winner]
        mock_store.get_certificate_for_audit_log.return_value = certificate
        mock_store.create_audit_log.side_effect = DuplicateCompletionError("k")

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.duplicate is True
        assert result.audit_log is winner
        assert result.certificate is certificate
        mock_store.create_certificate.assert_not_awaited()
        mock_store.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_insert_without_winner_raises(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A conflict with no visible winner propagates and rolls back."""
        mock_store.create_audit_log.side_effect = DuplicateCompletionError("k")

        with pytest.raises(DuplicateCompletionError):
            await recorder.record_completion(sample_learner_id, course.id, 100)

        mock_store.rollback.assert_awaited_once()
        mock_store.commit.assert_not_awaited()


class TestCertificateIssuance:
    """Tests for certificate issuance during completion."""

    @pytest.mark.asyncio
    async def test_active_certificate_is_reused(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A learner keeps one active certificate per course."""
        existing = _existing_certificate(sample_learner_id, course.id)
        mock_store.get_active_certificate.return_value = existing

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.certificate is existing
        mock_store.create_certificate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_number_conflict_is_retried(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """A colliding certificate number is regenerated."""
        async def create(certificate):
            effect = attempts.pop(0)
            if isinstance(effect, Exception):
                raise effect
            return effect(certificate)

        attempts = [CertificateNumberConflictError("CPE-TAKEN-AAAAAA"), _persist]
        mock_store.create_certificate.side_effect = create

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.certificate is not None
        assert mock_store.create_certificate.await_count == 2
        mock_store.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_and_roll_back(
        self, mock_store, course, sample_learner_id
    ):
        """Issuance fails after the configured number of collisions."""
        recorder = CompletionRecorder(mock_store, CPESettings(certificate_max_attempts=3))
        mock_store.create_certificate.side_effect = CertificateNumberConflictError("CPE-X-AAAAAA")

        with pytest.raises(CertificateIssuanceError):
            await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert mock_store.create_certificate.await_count == 3
        mock_store.rollback.assert_awaited_once()
        mock_store.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_active_certificate_is_returned(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Losing the active-certificate race returns the existing certificate."""
        existing = _existing_certificate(sample_learner_id, course.id)
        mock_store.create_certificate.side_effect = ActiveCertificateExistsError(existing)

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        assert result.certificate is existing

    @pytest.mark.asyncio
    async def test_hmac_tokens_use_configured_secret(self, mock_store, course, sample_learner_id):
        """HMAC tokens verify only with the configured secret."""
        settings = CPESettings(verification_method="hmac", verification_secret="s3cret-key")
        recorder = CompletionRecorder(mock_store, settings)

        result = await recorder.record_completion(sample_learner_id, course.id, 100, 95)

        certificate = result.certificate
        fields = (
            certificate.learner_id,
            certificate.course_id,
            certificate.cpe_credits_awarded,
            certificate.issue_date,
        )
        assert certificate.verification_method == "hmac"
        assert verify_verification_token(
            certificate.verification_hash, *fields, method="hmac", secret="s3cret-key"
        )
        assert not verify_verification_token(
            certificate.verification_hash, *fields, method="hmac", secret="other-key"
        )


class TestStoreFailures:
    """Tests for database failures during recording."""

    @pytest.mark.asyncio
    async def test_store_error_rolls_back_and_propagates(
        self, recorder, mock_store, course, sample_learner_id
    ):
        """Database errors are not swallowed."""
        mock_store.create_audit_log.side_effect = OperationalError("INSERT", {}, Exception("down"))

        with pytest.raises(OperationalError):
            await recorder.record_completion(sample_learner_id, course.id, 100)

        mock_store.rollback.assert_awaited_once()
        mock_store.commit.assert_not_awaited()


class TestCompletionIdempotencyKey:
    """Tests for completion_idempotency_key."""

    def test_same_day_same_key(self, sample_learner_id, sample_course_id):
        """Completions on the same UTC day share a key."""
        morning = datetime(2025, 3, 14, 0, 5, tzinfo=timezone.utc)
        evening = datetime(2025, 3, 14, 23, 55, tzinfo=timezone.utc)

        assert completion_idempotency_key(
            sample_learner_id, sample_course_id, morning
        ) == completion_idempotency_key(sample_learner_id, sample_course_id, evening)

    def test_next_day_new_key(self, sample_learner_id, sample_course_id):
        """A new UTC day gives a new key."""
        today = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
        tomorrow = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)

        assert completion_idempotency_key(
            sample_learner_id, sample_course_id, today
        ) != completion_idempotency_key(sample_learner_id, sample_course_id, tomorrow)

    def test_key_differs_per_course(self, sample_learner_id):
        """Different courses never share a key."""
        now = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)

        assert completion_idempotency_key(
            sample_learner_id, str(uuid4()), now
        ) != completion_idempotency_key(sample_learner_id, str(uuid4()), now)
