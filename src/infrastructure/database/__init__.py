# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database access: engine lifecycle, sessions and the ORM models."""

from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_engine_for_url,
    get_session,
    get_sessionmaker,
    init_database,
    session_factory,
)

__all__ = [
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "create_engine_for_url",
    "get_session",
    "get_sessionmaker",
    "init_database",
    "session_factory",
]
