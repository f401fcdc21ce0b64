# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Blob storage for uploaded import files.

The store is created once at startup from StorageSettings and handed to
request handlers through a FastAPI dependency.

Example:
    from src.infrastructure.storage import init_storage, get_storage

    await init_storage(settings)
    store = get_storage()
    await store.put(key, data)
"""

from typing import TYPE_CHECKING, Optional

from src.infrastructure.storage.base import BlobNotFoundError, BlobStore, StorageError
from src.infrastructure.storage.local import LocalBlobStore
from src.infrastructure.storage.s3 import S3BlobStore

if TYPE_CHECKING:
    from src.core.config.settings import Settings

_store: Optional[BlobStore] = None


def create_blob_store(settings: "Settings") -> BlobStore:
    """Create the blob store selected by settings.

    Args:
        settings: Application settings.

    Returns:
        A local or S3 blob store.
    """
    if settings.storage.backend == "s3":
        return S3BlobStore.from_settings(settings.storage)
    return LocalBlobStore(settings.storage.local_root)


async def init_storage(settings: "Settings") -> None:
    """Initialize the process-wide blob store."""
    global _store
    _store = create_blob_store(settings)


async def close_storage() -> None:
    """Close the process-wide blob store."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def get_storage() -> BlobStore:
    """Get the process-wide blob store.

    Raises:
        StorageError: If storage has not been initialized.
    """
    if _store is None:
        raise StorageError("Storage not initialized. Call init_storage() first.")
    return _store


__all__ = [
    "BlobStore",
    "BlobNotFoundError",
    "StorageError",
    "LocalBlobStore",
    "S3BlobStore",
    "create_blob_store",
    "init_storage",
    "close_storage",
    "get_storage",
]
