# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner interaction endpoints.

This module provides endpoints for learner activity:
- POST / - Record an interaction for the current user
- GET / - List the current user's interactions
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import DB, AuthenticatedUser
from src.domains.interaction.service import CourseNotFoundError, InteractionService
from src.models.interaction import (
    InteractionCreateRequest,
    InteractionListResponse,
    InteractionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> InteractionService:
    """Get interaction service instance.

    Args:
        db: Database session.

    Returns:
        Configured InteractionService instance.
    """
    return InteractionService(db=db)


@router.post(
    "",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record interaction",
    description="Record a learner interaction such as a view or a quiz result.",
)
async def create_interaction(
    data: InteractionCreateRequest,
    current_user: AuthenticatedUser,
    db: DB,
) -> InteractionResponse:
    """Record an interaction for the current user.

    Args:
        data: Interaction data.
        current_user: Authenticated learner.
        db: Database session.

    Returns:
        Recorded interaction.

    Raises:
        HTTPException: If the course does not exist.
    """
    service = _get_service(db)

    try:
        interaction = await service.record_interaction(current_user.id, data)
    except CourseNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return InteractionResponse.model_validate(interaction)


@router.get(
    "",
    response_model=InteractionListResponse,
    summary="List interactions",
    description="List the current user's interactions, newest first.",
)
async def list_interactions(
    current_user: AuthenticatedUser,
    db: DB,
    course_id: Annotated[UUID | None, Query(description="Filter by course")] = None,
) -> InteractionListResponse:
    """List the current user's interactions.

    Args:
        course_id: Optional course filter.
        current_user: Authenticated learner.
        db: Database session.

    Returns:
        Interaction list.
    """
    service = _get_service(db)
    interactions = await service.list_interactions(
        current_user.id,
        course_id=str(course_id) if course_id else None,
    )

    return InteractionListResponse(
        items=[InteractionResponse.model_validate(i) for i in interactions],
        total=len(interactions),
    )
