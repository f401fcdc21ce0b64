# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
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
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "STORAGE_BACKEND": "local",
        "JWT_SECRET_KEY": "test-secret-key-for-testing-only",
        "JWT_ALGORITHM": "HS256",
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
        "markers", "integration: mark test as an integration test"
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def admin_user_id() -> str:
    """Provide the id of the admin running imports."""
    return "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def other_admin_id() -> str:
    """Provide the id of a second admin."""
    return "550e8400-e29b-41d4-a716-446655440002"


@pytest.fixture
def course_mapping() -> dict[str, str]:
    """Mapping for the courses CSV built by courses_csv."""
    return {
        "course_id": "external_id",
        "course_title": "title",
        "minutes": "duration_minutes",
        "module_id": "module_external_id",
        "module_course": "module_course_external_id",
        "module_title": "module_title",
        "module_type": "module_type",
    }


@pytest.fixture
def user_mapping() -> dict[str, str]:
    """Mapping for the users CSV built by users_csv."""
    return {
        "email": "user_email",
        "first": "first_name",
        "last": "last_name",
        "course": "course_external_id",
        "role": "role",
        "due": "due_at",
    }


def build_csv(header: list[str], rows: list[list[Any]]) -> bytes:
    """Render rows as CSV bytes."""
    lines = [",".join(header)]
    for row in rows:
        lines.append(",".join("" if value is None else str(value) for value in row))
    return ("\n".join(lines) + "\n").encode("utf-8")


COURSE_HEADER = [
    "course_id",
    "course_title",
    "minutes",
    "module_id",
    "module_course",
    "module_title",
    "module_type",
]
USER_HEADER = ["email", "first", "last", "course", "role", "due"]


@pytest.fixture
def courses_csv() -> bytes:
    """Three courses, two of them with a module."""
    return build_csv(
        COURSE_HEADER,
        [
            ["C-001", "Safety Basics", "45", "M-001", "C-001", "Intro video", "video"],
            ["C-002", "Fire Drills", "30", "M-002", "C-002", "Checklist", "pdf"],
            ["C-003", "Ladders", "", "", "", "", ""],
        ],
    )


@pytest.fixture
def users_csv() -> bytes:
    """Two enrollments for one new user and one for another."""
    return build_csv(
        USER_HEADER,
        [
            ["Ana@Example.com", "Ana", "Lopez", "C-001", "student", "2025-03-01"],
            ["ana@example.com", "Ana", "Lopez", "C-002", "Manager", ""],
            ["ben@example.com", "Ben", "", "C-001", "staff", ""],
        ],
    )


@pytest.fixture
def make_csv():
    """Factory rendering a header and rows as CSV bytes."""
    return build_csv
