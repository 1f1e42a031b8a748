# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interaction API models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.infrastructure.database.models import InteractionType


class InteractionCreateRequest(BaseModel):
    """Request to record a learner interaction."""

    course_id: UUID = Field(..., description="Course the interaction belongs to")
    content_id: UUID | None = Field(None, description="Content item within the course")
    interaction_type: InteractionType = Field(..., description="Kind of interaction")
    score: int | None = Field(None, ge=0, le=100, description="Score for quiz_complete")
    time_spent: int | None = Field(None, ge=0, description="Seconds spent")


class InteractionResponse(BaseModel):
    """Recorded interaction."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    course_id: str
    content_id: str | None = None
    interaction_type: str
    score: int | None = None
    time_spent: int | None = None
    created_at: datetime


class InteractionListResponse(BaseModel):
    """List of interactions."""

    items: list[InteractionResponse]
    total: int
