# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Compliance gate for assessment-gated CPE courses.

A student may not progress into content of a regulator-approved course that
requires assessment until they hold a quiz_complete interaction scoring at
least the course's passing threshold. Every other case passes.

Store failures propagate; they are never turned into a PASS or BLOCKED
decision.
"""

from dataclasses import dataclass
from enum import Enum

from src.domains.cpe.store import CpeStore
from src.infrastructure.database.models import (
    DEFAULT_MINIMUM_PASSING_SCORE,
    Interaction,
    InteractionType,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

STUDENT_ROLE = "student"


class GateOutcome(str, Enum):
    """Result of a compliance evaluation."""

    PASS = "pass"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a compliance gate evaluation.

    Attributes:
        outcome: PASS or BLOCKED.
        reason: Short machine-readable explanation.
        minimum_score: Required score when BLOCKED.
    """

    outcome: GateOutcome
    reason: str
    minimum_score: int | None = None

    @property
    def allowed(self) -> bool:
        """Check if the request may proceed."""
        return self.outcome == GateOutcome.PASS

    @classmethod
    def passed(cls, reason: str) -> "GateDecision":
        return cls(outcome=GateOutcome.PASS, reason=reason)

    @classmethod
    def blocked(cls, minimum_score: int) -> "GateDecision":
        return cls(
            outcome=GateOutcome.BLOCKED,
            reason="assessment_required",
            minimum_score=minimum_score,
        )


def has_passing_assessment(interactions: list[Interaction], minimum_score: int) -> bool:
    """Check for a quiz completion scoring at least minimum_score.

    Args:
        interactions: Learner interactions for one course.
        minimum_score: Passing threshold.

    Returns:
        True if any quiz_complete interaction meets the threshold.
    """
    return any(
        interaction.interaction_type == InteractionType.QUIZ_COMPLETE.value
        and interaction.score is not None
        and interaction.score >= minimum_score
        for interaction in interactions
    )


def best_assessment_score(interactions: list[Interaction]) -> int | None:
    """Highest scored quiz_complete among interactions, or None."""
    scores = [
        interaction.score
        for interaction in interactions
        if interaction.interaction_type == InteractionType.QUIZ_COMPLETE.value
        and interaction.score is not None
    ]
    return max(scores, default=None)


class ComplianceGate:
    """Request-time guard for assessment-gated CPE content.

    Attributes:
        store: CPE persistence gateway.
        default_passing_score: Threshold used when a course sets none.
    """

    def __init__(
        self,
        store: CpeStore,
        default_passing_score: int = DEFAULT_MINIMUM_PASSING_SCORE,
    ) -> None:
        self.store = store
        self.default_passing_score = default_passing_score

    async def evaluate(
        self,
        learner_id: str | None,
        role: str | None,
        course_id: str | None,
    ) -> GateDecision:
        """Decide whether a request may proceed into course content.

        The role check runs first so non-students never trigger a course
        lookup.

        Args:
            learner_id: Requesting user's ID, None if anonymous.
            role: Requesting user's role.
            course_id: Course referenced by the request, if any.

        Returns:
            GateDecision with PASS or BLOCKED outcome.
        """
        if learner_id is None or role != STUDENT_ROLE:
            return GateDecision.passed("not_a_student")

        if not course_id:
            return GateDecision.passed("no_course")

        course = await self.store.get_course(course_id)
        if course is None:
            return GateDecision.passed("course_not_found")

        if not course.is_assessment_gated:
            return GateDecision.passed("not_assessment_gated")

        minimum_score = course.passing_score(self.default_passing_score)
        interactions = await self.store.list_interactions(
            learner_id,
            course_id,
            interaction_type=InteractionType.QUIZ_COMPLETE.value,
        )

        if has_passing_assessment(interactions, minimum_score):
            return GateDecision.passed("assessment_passed")

        logger.info(
            "cpe_gate_blocked",
            learner_id=learner_id,
            course_id=course_id,
            minimum_score=minimum_score,
        )
        return GateDecision.blocked(minimum_score)
