# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the import service.

Domains:
    auth: Bearer token verification.
    imports: Upload, mapping, dry-run and commit of bulk imports.
"""
