# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request dependencies shared by the API routes.

Routes declare what they need through the Annotated aliases at the bottom
(DB, Storage, AuthenticatedUser, AdminUser); tests swap get_db and
get_blob_store through ``app.dependency_overrides``.
"""

import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import get_settings
from src.infrastructure.database import close_database, get_session, init_database
from src.infrastructure.storage import BlobStore, close_storage, get_storage, init_storage

logger = logging.getLogger(__name__)


async def init_resources() -> None:
    """Initialize the database and the blob store."""
    settings = get_settings()

    await init_database(settings, create_schema=settings.database.is_sqlite)
    await init_storage(settings)


async def close_resources() -> None:
    """Close the blob store and the database."""
    await close_storage()
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for the application database.
    """
    async with get_session() as session:
        yield session


def get_blob_store() -> BlobStore:
    """Get the blob store holding uploaded files."""
    return get_storage()


def require_auth(request: Request) -> CurrentUser:
    """Caller resolved by AuthMiddleware; 401 with a Bearer challenge if none."""
    user = get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_admin(user: Annotated[CurrentUser, Depends(require_auth)]) -> CurrentUser:
    """Imports are an admin operation; other roles get 403."""
    if not user.is_admin:
        logger.info("Non-admin import access refused: user=%s", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


DB = Annotated[AsyncSession, Depends(get_db)]
Storage = Annotated[BlobStore, Depends(get_blob_store)]
AuthenticatedUser = Annotated[CurrentUser, Depends(require_auth)]
AdminUser = Annotated[CurrentUser, Depends(require_admin)]
