# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.

Modules:
    imports: Bulk import pipeline (upload, mapping, dry-run, commit).
"""

from fastapi import APIRouter

from src.api.v1 import imports

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(imports.router, prefix="/imports", tags=["Imports"])

__all__ = ["router"]
