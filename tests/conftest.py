# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across unit and API tests.
"""

from typing import Any

import pytest


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_environment() -> dict[str, str]:
    """Provide test environment variables.

    Returns:
        Dictionary of environment variables for testing.
    """
    return {
        "ENVIRONMENT": "development",
        "DEBUG": "true",
        "LOG_LEVEL": "DEBUG",
        "DB_HOST": "localhost",
        "DB_PORT": "5432",
        "DB_USER": "learnledger",
        "DB_DATABASE": "learnledger_test",
        "JWT_SECRET_KEY": "test-secret-key-for-testing-only",
        "JWT_ALGORITHM": "HS256",
        "ACCESS_TOKEN_EXPIRE_MINUTES": "30",
        "CPE_VERIFICATION_METHOD": "legacy",
    }


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_learner_id() -> str:
    """Provide a sample learner ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def sample_course_id() -> str:
    """Provide a sample course ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440002"


@pytest.fixture
def sample_reviewer_id() -> str:
    """Provide a sample compliance officer ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440003"


@pytest.fixture
def sample_completion_data() -> dict[str, Any]:
    """Provide sample completion request data for testing."""
    return {
        "time_spent_minutes": 100,
        "assessment_score": 90,
    }
