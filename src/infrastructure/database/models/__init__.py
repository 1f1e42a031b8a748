# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for LearnLedger."""

from src.infrastructure.database.models.base import (
    Base,
    CreatedAtMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from src.infrastructure.database.models.course import DEFAULT_MINIMUM_PASSING_SCORE, Course
from src.infrastructure.database.models.cpe import (
    AuditAction,
    CertificateStatus,
    CpeAuditLog,
    CpeCertificate,
    VerificationStatus,
)
from src.infrastructure.database.models.interaction import Interaction, InteractionType

__all__ = [
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Course",
    "DEFAULT_MINIMUM_PASSING_SCORE",
    "Interaction",
    "InteractionType",
    "CpeAuditLog",
    "CpeCertificate",
    "AuditAction",
    "VerificationStatus",
    "CertificateStatus",
]
