# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""S3-compatible blob store.

boto3 is synchronous, so every call runs in a worker thread.

Example:
    >>> store = S3BlobStore.from_settings(get_settings().storage)
    >>> await store.put("42/2025-01-01T00-00-00-000000+00-00-users.csv", data)
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.infrastructure.storage.base import BlobNotFoundError, BlobStore, StorageError

if TYPE_CHECKING:
    from src.core.config.settings import StorageSettings

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3BlobStore(BlobStore):
    """Stores blobs in one S3 bucket.

    Attributes:
        bucket: Bucket name.
    """

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: "StorageSettings") -> "S3BlobStore":
        """Build a store with a boto3 client configured from settings."""
        client = boto3.client(
            "s3",
            region_name=settings.region,
            endpoint_url=settings.endpoint_url,
            aws_access_key_id=(
                settings.access_key_id.get_secret_value() if settings.access_key_id else None
            ),
            aws_secret_access_key=(
                settings.secret_access_key.get_secret_value()
                if settings.secret_access_key
                else None
            ),
        )
        return cls(client, settings.bucket)

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        extra: dict[str, Any] = {}
        if content_type:
            extra["ContentType"] = content_type

        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                **extra,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error uploading file to S3: key=%s, error=%s", key, str(e))
            raise StorageError(f"Failed to store {key}") from e

        logger.info("Uploaded file to S3: %s (%d bytes)", key, len(data))
        return key

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client.get_object,
                Bucket=self.bucket,
                Key=key,
            )
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Blob not found: {key}") from e
            raise StorageError(f"Failed to read {key}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read {key}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self.bucket,
                Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete {key}") from e
