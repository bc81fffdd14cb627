# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

import datetime as dt
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
        "DATABASE_URL": "sqlite+aiosqlite://",
        "DATABASE_STATEMENT_TIMEOUT": "5",
        "RECONCILIATION_SESSION_MATCH_KEY": "date_start",
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
        "markers", "integration: mark test as an integration test (uses SQLite)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_slot_data() -> dict[str, Any]:
    """Provide a sample assigned slot."""
    return {
        "date": dt.date(2026, 2, 10),
        "start_time": dt.time(10, 0),
        "end_time": dt.time(12, 0),
        "attendance_intent": "pending",
    }


@pytest.fixture
def sample_enrollee_data(sample_slot_data: dict[str, Any]) -> dict[str, Any]:
    """Provide sample enrollee data for testing."""
    return {
        "first_name": "Ana",
        "last_name": "Gómez",
        "preferred_kind": "mesa",
        "assigned_slots": [sample_slot_data],
    }
