# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alembic environment for the LMS schema.

The target database is read from DatabaseSettings (``DATABASE_URL`` or the
``DATABASE_*`` parts), never from alembic.ini:

    alembic upgrade head
    DATABASE_URL=sqlite+aiosqlite:///./lumen.db alembic upgrade head
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

from src.core.config.settings import DatabaseSettings
from src.infrastructure.database.connection import create_engine_for_url
from src.infrastructure.database.models import Base

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

DATABASE_URL = DatabaseSettings().url


def _configure(**options: object) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **options)


def _migrate(connection: Connection) -> None:
    # SQLite cannot ALTER most constraints in place
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online() -> None:
    engine = create_engine_for_url(DATABASE_URL, poolclass=NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _configure(url=DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_migrate_online())
