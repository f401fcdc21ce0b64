# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Filesystem blob store used in development and tests."""

import asyncio
import logging
from pathlib import Path

from src.infrastructure.storage.base import BlobNotFoundError, BlobStore, StorageError

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Stores blobs as files below a root directory.

    Attributes:
        root: Directory holding all stored files.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise StorageError(f"Failed to store {key}: {e}") from e
        logger.debug("Stored blob: key=%s, size=%d", key, len(data))
        return key

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)
