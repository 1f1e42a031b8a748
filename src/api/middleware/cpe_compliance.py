# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE compliance enforcement for course content routes.

Routes that serve assessment-gated CPE content declare
``Depends(enforce_cpe_compliance)``. The dependency reads ``course_id`` from
the path, asks the ComplianceGate for a decision, and raises
CpeComplianceBlockedError when the learner has not passed the course
assessment. The application turns that into a 403 with a body clients
can act on:

    {"message": "...", "requiresAssessment": true, "minimumScore": 70}
"""

import logging
from uuid import UUID

from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse

from src.api.dependencies import get_compliance_gate
from src.api.middleware.auth import get_current_user
from src.domains.cpe.gate import ComplianceGate, GateDecision
from src.models.cpe import ComplianceBlockedResponse

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = "Assessment completion required for CPE credit"


class CpeComplianceBlockedError(Exception):
    """Raised when the compliance gate blocks a request."""

    def __init__(self, minimum_score: int) -> None:
        super().__init__(BLOCKED_MESSAGE)
        self.minimum_score = minimum_score


async def enforce_cpe_compliance(
    request: Request,
    course_id: UUID,
    gate: ComplianceGate = Depends(get_compliance_gate),
) -> GateDecision:
    """Run the compliance gate for the current request.

    Args:
        request: HTTP request.
        course_id: Course from the route path, validated before the gate runs.
        gate: Compliance gate bound to the request's database session.

    Returns:
        The PASS decision.

    Raises:
        CpeComplianceBlockedError: If the gate blocks the request.
    """
    user = get_current_user(request)

    decision = await gate.evaluate(
        learner_id=user.id if user else None,
        role=user.user_type if user else None,
        course_id=str(course_id),
    )

    if not decision.allowed:
        raise CpeComplianceBlockedError(decision.minimum_score)

    return decision


async def cpe_compliance_blocked_handler(
    request: Request,
    exc: CpeComplianceBlockedError,
) -> JSONResponse:
    """Render a compliance block as a 403 response.

    Args:
        request: HTTP request.
        exc: Compliance block raised by enforce_cpe_compliance.

    Returns:
        403 JSON response telling the client which score is required.
    """
    logger.info(
        "CPE compliance blocked: path=%s, minimum_score=%s",
        request.url.path,
        exc.minimum_score,
    )

    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=ComplianceBlockedResponse(
            message=BLOCKED_MESSAGE,
            minimum_score=exc.minimum_score,
        ).model_dump(by_alias=True),
    )
