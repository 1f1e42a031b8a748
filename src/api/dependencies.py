# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get authenticated users
- Get CPE domain components bound to the request's session

Example:
    @router.get("/cpe/summary")
    async def get_summary(
        service: CpeService = Depends(get_cpe_service),
        current_user: CurrentUser = Depends(require_auth),
    ):
        ...
"""

import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import get_settings
from src.domains.cpe.gate import ComplianceGate
from src.domains.cpe.recorder import CompletionRecorder
from src.domains.cpe.service import CpeService
from src.domains.cpe.store import CpeStore
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession scoped to the request.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(request: Request) -> CurrentUser:
    """Require admin user.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not authenticated or not admin.
    """
    user = require_auth(request)
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_compliance_reviewer(request: Request) -> CurrentUser:
    """Require admin or compliance officer user.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not allowed to review CPE audit entries.
    """
    user = require_auth(request)
    if not user.can_review_cpe:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Compliance officer or admin access required",
        )
    return user


# =========================================================================
# Service Dependencies
# =========================================================================


def get_cpe_store(db: AsyncSession = Depends(get_db)) -> CpeStore:
    """Get CpeStore bound to the request's session."""
    return CpeStore(db)


def get_compliance_gate(store: CpeStore = Depends(get_cpe_store)) -> ComplianceGate:
    """Get ComplianceGate instance.

    Args:
        store: CPE store.

    Returns:
        ComplianceGate using the configured default passing score.
    """
    return ComplianceGate(store, get_settings().cpe.default_passing_score)


def get_completion_recorder(store: CpeStore = Depends(get_cpe_store)) -> CompletionRecorder:
    """Get CompletionRecorder instance."""
    return CompletionRecorder(store, get_settings().cpe)


def get_cpe_service(store: CpeStore = Depends(get_cpe_store)) -> CpeService:
    """Get CpeService instance."""
    return CpeService(store, get_settings().cpe)


# =========================================================================
# Type Aliases for Cleaner Endpoint Signatures
# =========================================================================

DB = Annotated[AsyncSession, Depends(get_db)]
AuthenticatedUser = Annotated[CurrentUser, Depends(require_auth)]
AdminUser = Annotated[CurrentUser, Depends(require_admin)]
ComplianceReviewer = Annotated[CurrentUser, Depends(require_compliance_reviewer)]
