"""Lumen LMS Import Service.

Bulk content-import pipeline for the Lumen learning-management platform:
spreadsheet upload, column mapping, dry-run validation and commit of
courses, modules, users and enrollments.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
