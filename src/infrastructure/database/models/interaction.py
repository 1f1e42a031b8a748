# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner interaction model.

Interactions are append-only: lesson views, progress pings and quiz
submissions recorded against a course.
"""

from enum import Enum

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class InteractionType(str, Enum):
    """Kinds of learner interaction."""

    VIEW = "view"
    START = "start"
    PROGRESS = "progress"
    QUIZ_COMPLETE = "quiz_complete"
    COMPLETE = "complete"


class Interaction(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    """A single learner action against a course.

    Attributes:
        learner_id: Acting learner.
        course_id: Course the action belongs to.
        content_id: Optional content item within the course.
        interaction_type: One of InteractionType values.
        score: Assessment score for quiz_complete interactions.
        time_spent: Seconds spent on the action.
    """

    __tablename__ = "interactions"
    __table_args__ = (
        Index("ix_interactions_learner_course", "learner_id", "course_id"),
    )

    learner_id: Mapped[str] = mapped_column(postgresql.UUID(as_uuid=False), nullable=False)
    course_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="RESTRICT"),
        nullable=False,
    )
    content_id: Mapped[str | None] = mapped_column(postgresql.UUID(as_uuid=False), nullable=True)
    interaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    time_spent: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @property
    def is_quiz_completion(self) -> bool:
        """Check if this interaction is a completed quiz."""
        return self.interaction_type == InteractionType.QUIZ_COMPLETE.value

    def __repr__(self) -> str:
        return f"<Interaction {self.interaction_type} learner={self.learner_id}>"
