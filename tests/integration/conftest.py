# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration test fixtures.

Each test gets its own SQLite database file and local blob store under
pytest's tmp_path.
"""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.core.config.settings import ImportSettings
from src.domains.imports import ImportService
from src.infrastructure.database import create_engine_for_url, session_factory
from src.infrastructure.database.models import Base, Course
from src.infrastructure.storage import LocalBlobStore


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    """Local blob store rooted in the test directory."""
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def import_settings() -> ImportSettings:
    """Default import limits."""
    return ImportSettings()


@pytest_asyncio.fixture
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Engine with the schema created."""
    engine = create_engine_for_url(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session used by the service under test."""
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def import_service(
    db_session: AsyncSession,
    blob_store: LocalBlobStore,
    import_settings: ImportSettings,
) -> ImportService:
    """Import service wired to the test database and blob store."""
    return ImportService(db=db_session, storage=blob_store, settings=import_settings)


@pytest.fixture
def seed_courses(sessionmaker: async_sessionmaker[AsyncSession]):
    """Insert catalog courses directly, outside the service session."""

    async def _seed(*external_ids: str) -> None:
        async with sessionmaker() as session:
            for external_id in external_ids:
                session.add(Course(external_id=external_id, title=f"Course {external_id}"))
            await session.commit()

    return _seed
