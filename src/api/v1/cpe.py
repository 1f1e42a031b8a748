# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE tracking, verification and review endpoints.

This module provides endpoints for:
- GET /summary - Current user's CPE totals
- GET /certificates - Current user's certificates
- GET /audit-logs - Current user's audit trail
- GET /certificates/{certificate_number}/verify - Verify a certificate token
- POST /audit-logs/{audit_log_id}/verification - Review an audit entry
- GET /status - Program status

Certificate verification needs no authentication. Reviews require a
compliance officer or admin; program status requires an admin.
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import (
    AdminUser,
    ComplianceReviewer,
    get_cpe_service,
    require_auth,
)
from src.api.middleware.auth import CurrentUser
from src.domains.cpe.service import (
    AuditLogNotFoundError,
    CertificateNotFoundError,
    CpeService,
    InvalidVerificationTransitionError,
)
from src.infrastructure.database.models import VerificationStatus
from src.models.cpe import (
    AuditLogListResponse,
    AuditLogResponse,
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
    CpeSummaryResponse,
    ProgramStatusResponse,
    VerificationReviewRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/summary",
    response_model=CpeSummaryResponse,
    summary="Get CPE summary",
    description="Get the current user's CPE credit totals for a year.",
)
async def get_summary(
    year: Annotated[int | None, Query(ge=1970, le=9998, description="Calendar year")] = None,
    current_user: CurrentUser = Depends(require_auth),
    service: CpeService = Depends(get_cpe_service),
) -> CpeSummaryResponse:
    """Get the current user's CPE summary.

    Args:
        year: Calendar year (defaults to the current year).
        current_user: Authenticated user.
        service: CPE service.

    Returns:
        CPE summary.
    """
    summary = await service.get_summary(current_user.id, year)
    return CpeSummaryResponse.model_validate(summary)


@router.get(
    "/certificates",
    response_model=CertificateListResponse,
    summary="List certificates",
    description="List the current user's CPE certificates, newest first.",
)
async def list_certificates(
    current_user: CurrentUser = Depends(require_auth),
    service: CpeService = Depends(get_cpe_service),
) -> CertificateListResponse:
    """List the current user's certificates."""
    certificates = await service.list_certificates(current_user.id)
    return CertificateListResponse(
        items=[CertificateResponse.model_validate(c) for c in certificates],
        total=len(certificates),
    )


@router.get(
    "/audit-logs",
    response_model=AuditLogListResponse,
    summary="List audit logs",
    description="List the current user's CPE audit trail, newest first.",
)
async def list_audit_logs(
    current_user: CurrentUser = Depends(require_auth),
    service: CpeService = Depends(get_cpe_service),
) -> AuditLogListResponse:
    """List the current user's audit log entries."""
    entries = await service.list_audit_logs(current_user.id)
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.get(
    "/certificates/{certificate_number}/verify",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
    description="Check a certificate's verification token. No authentication required.",
)
async def verify_certificate(
    certificate_number: str,
    token: Annotated[str, Query(min_length=1, max_length=64, description="Verification token")],
    service: CpeService = Depends(get_cpe_service),
) -> CertificateVerificationResponse:
    """Verify a certificate token.

    Args:
        certificate_number: Certificate number.
        token: Verification token printed on the certificate.
        service: CPE service.

    Returns:
        Verification result.

    Raises:
        HTTPException: If the certificate does not exist.
    """
    try:
        result = await service.verify_certificate(certificate_number, token)
    except CertificateNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return CertificateVerificationResponse.model_validate(result)


@router.post(
    "/audit-logs/{audit_log_id}/verification",
    response_model=AuditLogResponse,
    summary="Review audit log entry",
    description="Verify or reject a pending CPE audit entry. Requires compliance officer or admin.",
)
async def review_audit_log(
    audit_log_id: UUID,
    data: VerificationReviewRequest,
    current_user: ComplianceReviewer,
    service: CpeService = Depends(get_cpe_service),
) -> AuditLogResponse:
    """Record a compliance review.

    Args:
        audit_log_id: Audit log entry ID.
        data: Review outcome and notes.
        current_user: Reviewing user.
        service: CPE service.

    Returns:
        Updated audit log entry.

    Raises:
        HTTPException: If the entry does not exist or was already reviewed.
    """
    try:
        entry = await service.set_verification_status(
            audit_log_id=str(audit_log_id),
            status=VerificationStatus(data.status),
            reviewer_id=current_user.id,
            notes=data.notes,
        )
    except AuditLogNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidVerificationTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )

    return AuditLogResponse.model_validate(entry)


@router.get(
    "/status",
    response_model=ProgramStatusResponse,
    summary="Get CPE program status",
    description="Program-wide CPE figures. Requires admin access.",
)
async def get_program_status(
    current_user: AdminUser,
    service: CpeService = Depends(get_cpe_service),
) -> ProgramStatusResponse:
    """Get program-wide CPE status."""
    program_status = await service.get_program_status()
    return ProgramStatusResponse.model_validate(program_status)
