# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness and readiness checks.

``/health/live`` only proves the process answers. ``/health`` and
``/health/ready`` also check the database and the blob store, which the
import pipeline cannot work without.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from src import __version__
from src.core.config import get_settings
from src.infrastructure.database import check_database_connection
from src.infrastructure.storage import StorageError, get_storage

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = time.monotonic()


class DependencyCheck(BaseModel):
    """Outcome of one dependency check."""

    ok: bool
    latency_ms: float | None = None
    detail: str | None = None


class HealthResponse(BaseModel):
    """Service status with per-dependency checks."""

    status: str
    version: str
    environment: str
    timestamp: datetime
    uptime_seconds: int
    database: DependencyCheck
    storage: DependencyCheck


async def ping_database() -> DependencyCheck:
    started = time.perf_counter()
    ok = await check_database_connection()
    if not ok:
        logger.warning("Database check failed")
        return DependencyCheck(ok=False, detail="Database unreachable")
    return DependencyCheck(ok=True, latency_ms=round((time.perf_counter() - started) * 1000, 2))


def ping_storage() -> DependencyCheck:
    try:
        store = get_storage()
    except StorageError as e:
        logger.warning("Storage check failed: %s", e)
        return DependencyCheck(ok=False, detail=str(e))
    return DependencyCheck(ok=True, detail=type(store).__name__)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    settings = get_settings()
    database = await ping_database()
    storage = ping_storage()
    return HealthResponse(
        status="healthy" if database.ok and storage.ok else "unhealthy",
        version=__version__,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=int(time.monotonic() - _started_at),
        database=database,
        storage=storage,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> dict[str, bool]:
    """Report readiness; answers 503 until both dependencies respond."""
    checks = {
        "database": (await ping_database()).ok,
        "storage": ping_storage().ok,
    }
    ready = all(checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"ready": ready, **checks}
