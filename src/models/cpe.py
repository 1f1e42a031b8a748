# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE API models.

Credit amounts are serialized as two-place decimal strings so that
"1.50" survives the round trip through JSON.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CompletionRequest(BaseModel):
    """Course completion trigger."""

    time_spent_minutes: float = Field(
        ...,
        ge=0,
        le=24 * 60,
        allow_inf_nan=False,
        description="Engagement time in minutes, at most one day",
    )
    assessment_score: int | None = Field(
        None, ge=0, le=100, description="Final assessment score, if taken"
    )


class AuditLogResponse(BaseModel):
    """CPE audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    course_id: str
    action: str
    cpe_credits_earned: Decimal
    completion_date: datetime
    assessment_score: int | None = None
    time_spent_minutes: Decimal
    ip_address: str | None = None
    user_agent: str | None = None
    verification_status: str
    verified_by: str | None = None
    verified_at: datetime | None = None
    verification_notes: str | None = None


class CertificateResponse(BaseModel):
    """Issued CPE certificate."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    certificate_number: str
    learner_id: str
    course_id: str
    audit_log_id: str
    cpe_credits_awarded: Decimal
    verification_hash: str
    verification_method: str
    status: str
    issue_date: datetime


class CompletionResponse(BaseModel):
    """Outcome of a completion trigger.

    recorded is False when the course is not CPE-eligible or the session
    earned no credits.
    """

    recorded: bool
    duplicate: bool = False
    audit_log: AuditLogResponse | None = None
    certificate: CertificateResponse | None = None


class CourseAccessResponse(BaseModel):
    """Result of a compliance-gated access check."""

    course_id: str
    allowed: bool = True


class CpeSummaryResponse(BaseModel):
    """Learner CPE tracker summary."""

    model_config = ConfigDict(from_attributes=True)

    learner_id: str
    year: int
    total_credits: Decimal
    year_credits: Decimal
    active_credits: Decimal
    annual_requirement: Decimal
    credits_remaining: Decimal
    is_compliant: bool
    certificate_count: int


class CertificateListResponse(BaseModel):
    """List of certificates."""

    items: list[CertificateResponse]
    total: int


class AuditLogListResponse(BaseModel):
    """List of audit log entries."""

    items: list[AuditLogResponse]
    total: int


class CertificateVerificationResponse(BaseModel):
    """Public certificate verification result."""

    model_config = ConfigDict(from_attributes=True)

    valid: bool
    certificate_number: str
    status: str
    issue_date: datetime
    cpe_credits_awarded: Decimal
    course_id: str


class VerificationReviewRequest(BaseModel):
    """Compliance officer review of an audit log entry."""

    status: Literal["verified", "rejected"] = Field(..., description="Review outcome")
    notes: str | None = Field(None, max_length=2000, description="Reviewer notes")


class ProgramStatusResponse(BaseModel):
    """Program-wide CPE status for administrators."""

    model_config = ConfigDict(from_attributes=True)

    certificates_issued: int
    credits_awarded: Decimal
    pending_reviews: int
    verification_method: str
    auto_verify_completions: bool
    minutes_per_credit: int
    default_passing_score: int


class ComplianceBlockedResponse(BaseModel):
    """Body of a 403 from the compliance gate."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    requires_assessment: bool = Field(True, alias="requiresAssessment")
    minimum_score: int = Field(..., alias="minimumScore")
