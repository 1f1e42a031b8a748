# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for LearnLedger.

This module provides standardized datetime operations to ensure consistency
across the codebase.

Design Decisions:
-----------------
1. All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ)
2. All Python datetimes are timezone-aware (with timezone.utc)
3. Epoch milliseconds are the canonical integer form of an instant
   (certificate numbers and verification tokens are built from them)

Usage:
------
    from src.utils.datetime import utc_now

    # For SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import date, datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_epoch_millis(dt: datetime) -> int:
    """Convert a datetime to integer milliseconds since the Unix epoch.

    Naive datetimes are treated as UTC.

    Args:
        dt: Datetime to convert.

    Returns:
        Milliseconds since epoch.
    """
    dt_utc = ensure_utc(dt)
    # Integer timedelta division; float timestamps can land one millisecond low
    return (dt_utc - _EPOCH) // timedelta(milliseconds=1)


def truncate_to_millis(dt: datetime) -> datetime:
    """Drop sub-millisecond precision from a datetime."""
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def utc_from_millis(millis: int) -> datetime:
    """Create a timezone-aware UTC datetime from epoch milliseconds.

    Args:
        millis: Milliseconds since the Unix epoch.

    Returns:
        Timezone-aware UTC datetime.
    """
    return _EPOCH + timedelta(milliseconds=millis)


def utc_date(dt: datetime) -> date:
    """Get the UTC calendar date of a datetime."""
    return ensure_utc(dt).date()


def year_bounds(year: int) -> tuple[datetime, datetime]:
    """Get the UTC start of a year and the start of the following year.

    Args:
        year: Calendar year.

    Returns:
        Tuple of (inclusive start, exclusive end).
    """
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )
