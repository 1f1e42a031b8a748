# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for LearnLedger.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from src.utils.datetime import (
    ensure_utc,
    to_epoch_millis,
    truncate_to_millis,
    utc_date,
    utc_from_millis,
    utc_now,
    year_bounds,
)
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "to_epoch_millis",
    "truncate_to_millis",
    "utc_from_millis",
    "utc_date",
    "year_bounds",
]
