# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Blob store interface for uploaded import files."""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised when the blob store cannot complete an operation."""

    pass


class BlobNotFoundError(StorageError):
    """Raised when a requested blob does not exist."""

    pass


class BlobStore(ABC):
    """Async key/value store for file contents.

    Keys are slash-separated paths such as ``{user_id}/{timestamp}-{name}``.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """Store bytes under a key.

        Args:
            key: Object key.
            data: File contents.
            content_type: Optional MIME type.

        Returns:
            The key the object was stored under.

        Raises:
            StorageError: If the write fails.
        """

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Read the bytes stored under a key.

        Raises:
            BlobNotFoundError: If nothing is stored under the key.
            StorageError: If the read fails.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""

    async def close(self) -> None:
        """Release any client resources."""
        return None
