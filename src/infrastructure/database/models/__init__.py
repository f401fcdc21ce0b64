# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the LMS schema."""

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.infrastructure.database.models.course import Course, Module
from src.infrastructure.database.models.import_job import ImportJob, ImportJobError, ImportMapping
from src.infrastructure.database.models.user import Enrollment, Profile, User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Course",
    "Module",
    "User",
    "Profile",
    "Enrollment",
    "ImportJob",
    "ImportMapping",
    "ImportJobError",
]
