# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course model.

Only the attributes the CPE subsystem reads are mapped here; the rest of
the course record is owned by the wider LMS.
"""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

DEFAULT_MINIMUM_PASSING_SCORE = 70


class Course(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A teachable unit that learners progress through.

    Attributes:
        title: Course title.
        instructor_id: Owning instructor.
        is_regulator_approved: Whether completions earn regulatory CPE credit.
        requires_assessment: Whether a passed quiz gates CPE content.
        minimum_passing_score: Passing percentage; NULL means the default.
    """

    __tablename__ = "courses"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    instructor_id: Mapped[str] = mapped_column(postgresql.UUID(as_uuid=False), nullable=False)
    is_regulator_approved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    requires_assessment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    minimum_passing_score: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=DEFAULT_MINIMUM_PASSING_SCORE
    )

    def passing_score(self, default: int = DEFAULT_MINIMUM_PASSING_SCORE) -> int:
        """Get the effective passing score, falling back to default when unset."""
        if self.minimum_passing_score is None:
            return default
        return self.minimum_passing_score

    @property
    def is_assessment_gated(self) -> bool:
        """Check if CPE content requires a passed assessment."""
        return bool(self.is_regulator_approved and self.requires_assessment)

    def __repr__(self) -> str:
        return f"<Course {self.id} approved={self.is_regulator_approved}>"
