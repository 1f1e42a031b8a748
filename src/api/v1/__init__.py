# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific domain.

Modules:
    courses: Compliance-gated course access and completion endpoints.
    interactions: Learner interaction endpoints.
    cpe: CPE tracking, certificate verification and audit review endpoints.
"""

from fastapi import APIRouter

from src.api.v1 import courses, cpe, interactions

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(courses.router, prefix="/courses", tags=["Courses"])
router.include_router(interactions.router, prefix="/interactions", tags=["Interactions"])
router.include_router(cpe.router, prefix="/cpe", tags=["CPE"])

__all__ = ["router"]
