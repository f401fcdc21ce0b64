# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Row-level error records produced by validation and commit."""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable codes attached to row errors."""

    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_DATE = "INVALID_DATE"
    COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
    ROW_FAILED = "ROW_FAILED"


@dataclass(frozen=True)
class RowError:
    """One problem found in one source row.

    Attributes:
        row_number: 1-based row in the source file; the header is row 1.
        code: Error code.
        message: Human readable description.
        field: Target field the error refers to, if any.
        raw: Cleaned original cells of every source column, keyed by header.
    """

    row_number: int
    code: ErrorCode
    message: str
    field: str | None = None
    raw: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "code": self.code.value,
            "message": self.message,
            "field": self.field,
            "raw": self.raw,
        }
