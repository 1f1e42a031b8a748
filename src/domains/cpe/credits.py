# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""CPE credit calculation.

Regulatory convention: 50 minutes of engagement earn 1.00 CPE credit, and
a session shorter than one full credit earns nothing. Above that minimum,
credits are truncated to two decimal places so a learner is never
over-awarded.

Example:
    >>> calculate_cpe_credits(75)
    Decimal('1.50')
    >>> calculate_cpe_credits(49)
    Decimal('0.00')
"""

from decimal import ROUND_FLOOR, Decimal, localcontext

MINUTES_PER_CREDIT = 50

# One audit entry per learner, course and UTC day, so one session is at most a day
MAX_SESSION_MINUTES = 24 * 60

_CENT = Decimal("0.01")
ZERO_CREDITS = Decimal("0.00")


class InvalidEngagementTimeError(ValueError):
    """Raised when time spent is negative or not a finite number."""

    pass


def calculate_cpe_credits(
    time_spent_minutes: float | int | Decimal,
    minutes_per_credit: int = MINUTES_PER_CREDIT,
) -> Decimal:
    """Convert engagement time into CPE credits.

    Computes floor(minutes / minutes_per_credit * 100) / 100 once at least
    minutes_per_credit minutes were spent, and zero below that.

    Args:
        time_spent_minutes: Non-negative engagement time in minutes.
        minutes_per_credit: Minutes worth one credit.

    Returns:
        Credits as a Decimal with exactly two decimal places.

    Raises:
        InvalidEngagementTimeError: If time_spent_minutes is negative or not finite.
    """
    # str() keeps float inputs like 75.0 exact instead of their binary expansion
    minutes = Decimal(str(time_spent_minutes))
    if not minutes.is_finite() or minutes < 0:
        raise InvalidEngagementTimeError(
            f"Time spent must be a non-negative number, got {time_spent_minutes!r}"
        )

    if minutes < minutes_per_credit:
        return ZERO_CREDITS

    with localcontext() as ctx:
        # Room for every digit of the input plus the two cent places
        ctx.prec = max(ctx.prec, minutes.adjusted() + 4, len(minutes.as_tuple().digits) + 4)
        ctx.rounding = ROUND_FLOOR
        credits = minutes / Decimal(minutes_per_credit)
        return credits.quantize(_CENT)


def format_credits(credits: Decimal) -> str:
    """Render credits in their canonical two-place form."""
    return str(credits.quantize(_CENT, rounding=ROUND_FLOOR))
