# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course CPE endpoints.

This module provides endpoints for CPE-eligible courses:
- GET /{course_id}/access - Compliance-gated access check
- POST /{course_id}/completion - Record a course completion

Access to assessment-gated content is blocked for students until they
pass the course assessment; see src.api.middleware.cpe_compliance.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.dependencies import get_completion_recorder, require_auth
from src.api.middleware.auth import CurrentUser
from src.api.middleware.cpe_compliance import enforce_cpe_compliance
from src.api.middleware.rate_limit import completion_rate_limit, limiter
from src.domains.cpe.credits import InvalidEngagementTimeError
from src.domains.cpe.gate import GateDecision
from src.domains.cpe.recorder import (
    CertificateIssuanceError,
    CompletionMetadata,
    CompletionRecorder,
)
from src.models.cpe import (
    AuditLogResponse,
    CertificateResponse,
    CompletionRequest,
    ComplianceBlockedResponse,
    CompletionResponse,
    CourseAccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/{course_id}/access",
    response_model=CourseAccessResponse,
    responses={status.HTTP_403_FORBIDDEN: {"model": ComplianceBlockedResponse}},
    summary="Check CPE content access",
    description="Check whether the current user may open the course's CPE content.",
)
async def check_course_access(
    course_id: UUID,
    current_user: CurrentUser = Depends(require_auth),
    decision: GateDecision = Depends(enforce_cpe_compliance),
) -> CourseAccessResponse:
    """Check access to a course's CPE content.

    Blocked students receive a 403 from the compliance handler before
    this body runs.

    Args:
        course_id: Course identifier.
        current_user: Authenticated user.
        decision: Gate decision (always PASS here).

    Returns:
        Access response.
    """
    return CourseAccessResponse(course_id=str(course_id), allowed=decision.allowed)


@router.post(
    "/{course_id}/completion",
    response_model=CompletionResponse,
    summary="Record course completion",
    description="Record a completion and issue CPE credit where eligible.",
)
@limiter.limit(completion_rate_limit)
async def complete_course(
    request: Request,
    course_id: UUID,
    data: CompletionRequest,
    current_user: CurrentUser = Depends(require_auth),
    recorder: CompletionRecorder = Depends(get_completion_recorder),
) -> CompletionResponse:
    """Record a course completion for the current user.

    Args:
        request: HTTP request (client address and User-Agent are audited).
        course_id: Completed course.
        data: Completion details.
        current_user: Authenticated learner.
        recorder: Completion recorder.

    Returns:
        Completion response; recorded is False when no credit applies.

    Raises:
        HTTPException: If time spent is invalid or no certificate number
            could be generated.
    """
    metadata = CompletionMetadata(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    try:
        result = await recorder.record_completion(
            learner_id=current_user.id,
            course_id=str(course_id),
            time_spent_minutes=data.time_spent_minutes,
            assessment_score=data.assessment_score,
            metadata=metadata,
        )
    except InvalidEngagementTimeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except CertificateIssuanceError as e:
        logger.error("Certificate issuance failed for course %s: %s", course_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        )

    if result is None:
        return CompletionResponse(recorded=False)

    return CompletionResponse(
        recorded=True,
        duplicate=result.duplicate,
        audit_log=AuditLogResponse.model_validate(result.audit_log),
        certificate=(
            CertificateResponse.model_validate(result.certificate)
            if result.certificate
            else None
        ),
    )
