# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE compliance domain.

Credit calculation, certificate identifiers, the compliance gate for
assessment-gated courses, completion recording, and CPE reporting.
"""

from src.domains.cpe.credits import (
    MAX_SESSION_MINUTES,
    MINUTES_PER_CREDIT,
    InvalidEngagementTimeError,
    calculate_cpe_credits,
    format_credits,
)
from src.domains.cpe.gate import (
    ComplianceGate,
    GateDecision,
    GateOutcome,
    best_assessment_score,
)
from src.domains.cpe.identifiers import (
    generate_certificate_number,
    generate_verification_token,
    parse_certificate_number,
    verify_verification_token,
)
from src.domains.cpe.recorder import (
    CertificateIssuanceError,
    CompletionMetadata,
    CompletionRecorder,
    CompletionRecorderError,
    CompletionResult,
    completion_idempotency_key,
)
from src.domains.cpe.service import (
    AuditLogNotFoundError,
    CertificateNotFoundError,
    CertificateVerification,
    CpeService,
    CpeServiceError,
    CpeSummary,
    InvalidVerificationTransitionError,
    ProgramStatus,
)
from src.domains.cpe.store import CpeStore

__all__ = [
    # Credits
    "MAX_SESSION_MINUTES",
    "MINUTES_PER_CREDIT",
    "InvalidEngagementTimeError",
    "calculate_cpe_credits",
    "format_credits",
    # Identifiers
    "generate_certificate_number",
    "generate_verification_token",
    "parse_certificate_number",
    "verify_verification_token",
    # Gate
    "ComplianceGate",
    "GateDecision",
    "GateOutcome",
    "best_assessment_score",
    # Recorder
    "CompletionRecorder",
    "CompletionMetadata",
    "CompletionResult",
    "CompletionRecorderError",
    "CertificateIssuanceError",
    "completion_idempotency_key",
    # Service
    "CpeService",
    "CpeServiceError",
    "CpeSummary",
    "CertificateVerification",
    "ProgramStatus",
    "AuditLogNotFoundError",
    "CertificateNotFoundError",
    "InvalidVerificationTransitionError",
    # Store
    "CpeStore",
]
