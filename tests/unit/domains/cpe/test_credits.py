# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for CPE credit calculation."""

import math
from decimal import Decimal

import pytest

from src.domains.cpe.credits import (
    InvalidEngagementTimeError,
    calculate_cpe_credits,
    format_credits,
)


class TestCalculateCpeCredits:
    """Tests for calculate_cpe_credits."""

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [
            (0, "0.00"),
            (25, "0.00"),
            (49, "0.00"),
            (49.99, "0.00"),
            (50, "1.00"),
            (75, "1.50"),
            (100, "2.00"),
            (51, "1.02"),
            (99.99, "1.99"),
            (77.7, "1.55"),
        ],
    )
    def test_known_values(self, minutes, expected) -> None:
        """Below one credit earns nothing; above it minutes/50 is truncated to two places."""
        assert calculate_cpe_credits(minutes) == Decimal(expected)

    def test_result_has_two_decimal_places(self) -> None:
        """The result is always quantized to cents."""
        credits = calculate_cpe_credits(100)

        assert credits.as_tuple().exponent == -2

    def test_never_rounds_up(self) -> None:
        """Truncation never over-awards credit."""
        for minutes in range(0, 500):
            credits = calculate_cpe_credits(minutes)
            assert credits <= Decimal(minutes) / Decimal(50)

    def test_monotonic_in_time_spent(self) -> None:
        """More time never earns fewer credits."""
        previous = Decimal("0.00")
        for tenths in range(0, 3000):
            credits = calculate_cpe_credits(tenths / 10)
            assert credits >= previous
            previous = credits

    def test_accepts_decimal_input(self) -> None:
        """Decimal minutes are used as-is."""
        assert calculate_cpe_credits(Decimal("62.5")) == Decimal("1.25")

    def test_custom_minutes_per_credit(self) -> None:
        """The minutes-per-credit ratio is configurable."""
        assert calculate_cpe_credits(60, minutes_per_credit=60) == Decimal("1.00")
        assert calculate_cpe_credits(59, minutes_per_credit=60) == Decimal("0.00")

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [
            (1e30, "20000000000000000000000000000.00"),
            (Decimal("123456789012345678901234567890.5"), "2469135780246913578024691357.81"),
            (500000, "10000.00"),
        ],
    )
    def test_large_values(self, minutes, expected) -> None:
        """Values beyond the default decimal precision still truncate exactly."""
        assert calculate_cpe_credits(minutes) == Decimal(expected)

    def test_many_decimal_places_never_round_up(self) -> None:
        """Input finer than the working precision is truncated, not rounded."""
        minutes = Decimal("99.999999999999999999999999999999999")

        assert calculate_cpe_credits(minutes) == Decimal("1.99")

    def test_negative_time_raises(self) -> None:
        """Negative engagement time is rejected."""
        with pytest.raises(InvalidEngagementTimeError):
            calculate_cpe_credits(-1)

    @pytest.mark.parametrize("value", [math.inf, math.nan])
    def test_non_finite_time_raises(self, value) -> None:
        """Infinite or NaN engagement time is rejected."""
        with pytest.raises(InvalidEngagementTimeError):
            calculate_cpe_credits(value)

    def test_invalid_time_is_a_value_error(self) -> None:
        """Callers catching ValueError also see invalid engagement time."""
        with pytest.raises(ValueError):
            calculate_cpe_credits(-0.01)


class TestFormatCredits:
    """Tests for format_credits."""

    def test_formats_two_places(self) -> None:
        """Credits render with exactly two decimal places."""
        assert format_credits(Decimal("2")) == "2.00"
        assert format_credits(Decimal("1.5")) == "1.50"
