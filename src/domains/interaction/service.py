# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interaction service for recording learner activity.

Interactions feed the CPE compliance gate: a quiz_complete interaction
with a passing score is what unlocks assessment-gated course content.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import Course, Interaction
from src.models.interaction import InteractionCreateRequest

logger = logging.getLogger(__name__)


class InteractionServiceError(Exception):
    """Base exception for interaction service errors."""

    pass


class CourseNotFoundError(InteractionServiceError):
    """Raised when course is not found."""

    pass


class InteractionService:
    """Service for appending and listing learner interactions.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize interaction service.

        Args:
            db: Async database session.
        """
        self.db = db

    async def record_interaction(
        self,
        learner_id: str,
        request: InteractionCreateRequest,
    ) -> Interaction:
        """Append an interaction for a learner.

        Args:
            learner_id: Acting learner.
            request: Interaction data.

        Returns:
            The stored interaction.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        course_id = str(request.course_id)

        result = await self.db.execute(select(Course.id).where(Course.id == course_id))
        if result.scalar_one_or_none() is None:
            raise CourseNotFoundError(f"Course {course_id} not found")

        interaction = Interaction(
            learner_id=learner_id,
            course_id=course_id,
            content_id=str(request.content_id) if request.content_id else None,
            interaction_type=request.interaction_type.value,
            score=request.score,
            time_spent=request.time_spent,
        )
        self.db.add(interaction)
        await self.db.commit()
        await self.db.refresh(interaction)

        logger.info(
            "Recorded interaction: learner=%s, course=%s, type=%s",
            learner_id,
            course_id,
            interaction.interaction_type,
        )

        return interaction

    async def list_interactions(
        self,
        learner_id: str,
        course_id: str | None = None,
    ) -> list[Interaction]:
        """List a learner's interactions, newest first.

        Args:
            learner_id: Learner identifier.
            course_id: Optional course filter.

        Returns:
            Interactions ordered by creation time descending.
        """
        conditions = [Interaction.learner_id == learner_id]
        if course_id:
            conditions.append(Interaction.course_id == course_id)

        result = await self.db.execute(
            select(Interaction)
            .where(and_(*conditions))
            .order_by(Interaction.created_at.desc())
        )
        return list(result.scalars().all())
