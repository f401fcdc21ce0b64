# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk import domain.

Upload, mapping, dry-run validation and commit of spreadsheet imports for
courses with modules and users with enrollments.
"""

from src.domains.imports.errors import ErrorCode, RowError
from src.domains.imports.fields import ImportKind, JobStatus
from src.domains.imports.service import (
    ImportJobFailedError,
    ImportService,
    ImportServiceError,
    InvalidFileError,
    InvalidMappingError,
    InvalidRequestError,
    JobCreationError,
    JobNotFoundError,
    JobStateError,
    StorageWriteError,
    StoredFileMissingError,
    get_field_catalog,
    parse_kind,
)

__all__ = [
    "ErrorCode",
    "RowError",
    "ImportKind",
    "JobStatus",
    "ImportService",
    "ImportServiceError",
    "ImportJobFailedError",
    "InvalidFileError",
    "InvalidMappingError",
    "InvalidRequestError",
    "JobCreationError",
    "JobNotFoundError",
    "JobStateError",
    "StorageWriteError",
    "StoredFileMissingError",
    "get_field_catalog",
    "parse_kind",
]
