# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner interaction domain."""

from src.domains.interaction.service import (
    CourseNotFoundError,
    InteractionService,
    InteractionServiceError,
)

__all__ = [
    "InteractionService",
    "InteractionServiceError",
    "CourseNotFoundError",
]
