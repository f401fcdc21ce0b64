# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Process-wide async engine and session factory.

PostgreSQL is reached through asyncpg; SQLite through aiosqlite for local
runs and tests. init_database() runs once in the application lifespan,
after which get_session() hands out sessions.
"""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.infrastructure.database.models.base import Base

if TYPE_CHECKING:
    from src.core.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


class DatabaseError(Exception):
    """A database operation failed; ``original_error`` keeps the driver error."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is None:
            return self.message
        return f"{self.message}: {self.original_error}"


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    # pysqlite opens transactions itself and breaks SAVEPOINT; take over BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_engine_for_url(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an engine on which per-row savepoints work for every backend.

    Args:
        url: Async database URL.
        **kwargs: Passed to create_async_engine.
    """
    engine = create_async_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    return engine


def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions whose objects stay readable after commit."""
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


async def init_database(settings: "Settings", create_schema: bool = False) -> None:
    """Create the engine and session factory.

    Args:
        settings: Provides the database URL and pool sizes.
        create_schema: Create missing tables; used with SQLite where
            migrations are usually not run.

    Raises:
        DatabaseError: The engine could not be created or the schema built.
    """
    global _engine, _sessionmaker

    db = settings.database
    pool: dict[str, Any] = {}
    if not db.is_sqlite:
        pool = {
            "pool_size": db.pool_size,
            "max_overflow": db.max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 1800,
        }

    try:
        _engine = create_engine_for_url(db.url, **pool)
        if create_schema:
            async with _engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e
    _sessionmaker = session_factory(_engine)


async def close_database() -> None:
    global _engine, _sessionmaker

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Session committed when the block exits cleanly and rolled back otherwise.

    The import service commits at each stage transition itself, so for its
    requests the final commit has nothing left to flush.

    Raises:
        DatabaseError: Not initialized, or a SQLAlchemy error escaped the block.
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except Exception:
            await session.rollback()
            raise


async def check_database_connection() -> bool:
    """True when ``SELECT 1`` succeeds on the initialized engine."""
    if _engine is None:
        return False
    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        return False
    return True
