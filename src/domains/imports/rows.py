# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mapping application and typed import rows.

A source row is turned into two views:

* the normalized record, used for previews: mapped
  columns only, whitespace trimmed, blanks as None, "true"/"false" as
  booleans and numeric strings as numbers;
* a typed row (CourseModuleRow or UserEnrollmentRow) whose attributes are
  converted according to the target field catalog. Conversion problems
  are kept on the row and reported by validation.

Text fields are converted from the trimmed cell text rather than the
normalized record so identifiers such as "007" keep their form.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Union

import email_validator
from email_validator import EmailNotValidError, validate_email

from src.domains.imports.errors import ErrorCode, RowError
from src.domains.imports.fields import FieldType, ImportKind, TargetField, get_fields
from src.domains.imports.parsing import SourceRow
from src.utils.datetime import parse_date_value

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")

# Intranet (.local) and sandbox (.test) accounts are imported too; the address
# is only checked for syntax. Dotless domains such as localhost stay invalid.
for _domain in ("local", "test"):
    if _domain in email_validator.SPECIAL_USE_DOMAIN_NAMES:
        email_validator.SPECIAL_USE_DOMAIN_NAMES.remove(_domain)


def clean_cell(value: Any) -> Any:
    """Trim strings and turn blanks and NaN into None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def coerce_scalar(value: Any) -> Any:
    """Normalize one cell for the preview record."""
    value = clean_cell(value)
    if not isinstance(value, str):
        return value

    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    return value


def normalize_record(row: SourceRow, mapping: Mapping[str, str]) -> dict[str, Any]:
    """Copy mapped columns of a row under their target names.

    Args:
        row: Parsed source row.
        mapping: Source column to target field.

    Returns:
        Target field to normalized value.
    """
    return {
        target: _jsonable(coerce_scalar(row.values.get(source)))
        for source, target in mapping.items()
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def as_text(value: Any) -> str | None:
    """Textual form of a cell."""
    value = clean_cell(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class ConversionError(ValueError):
    """A cell could not be converted to its field type."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def convert_value(target: TargetField, value: Any) -> Any:
    """Convert a cell to the type of its target field.

    Returns:
        The converted value, or None for blank cells.

    Raises:
        ConversionError: If the cell does not fit the field type.
    """
    value = clean_cell(value)
    if value is None:
        return None

    if target.field_type == FieldType.INTEGER:
        number = coerce_scalar(value)
        if isinstance(number, bool):
            raise ConversionError(ErrorCode.INVALID_VALUE, f"{target.name} must be a whole number")
        if isinstance(number, int):
            return number
        if isinstance(number, float) and number.is_integer():
            return int(number)
        raise ConversionError(ErrorCode.INVALID_VALUE, f"{target.name} must be a whole number")

    if target.field_type == FieldType.BOOLEAN:
        flag = coerce_scalar(value)
        if isinstance(flag, bool):
            return flag
        if flag in (0, 1):
            return bool(flag)
        raise ConversionError(ErrorCode.INVALID_VALUE, f"{target.name} must be true or false")

    if target.field_type == FieldType.EMAIL:
        text = as_text(value)
        try:
            validate_email(text, check_deliverability=False)
        except EmailNotValidError as e:
            raise ConversionError(ErrorCode.INVALID_EMAIL, "Invalid email format") from e
        return text.lower()

    if target.field_type == FieldType.DATE:
        try:
            return parse_date_value(value)
        except ValueError as e:
            raise ConversionError(
                ErrorCode.INVALID_DATE, f"{target.name} is not a valid date"
            ) from e

    if target.field_type == FieldType.CHOICE:
        text = as_text(value).lower()
        if text not in target.choices:
            raise ConversionError(
                ErrorCode.INVALID_VALUE,
                f"{target.name} must be one of: {', '.join(target.choices)}",
            )
        return text

    return as_text(value)


@dataclass
class MappedRow:
    """Base for typed rows.

    Attributes:
        row_number: Row in the source file.
        record: Normalized record of the row.
        raw: Original cell values of the row.
        problems: Conversion errors found while building the row.
    """

    row_number: int
    record: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)
    problems: list[RowError] = field(default_factory=list)

    def value(self, name: str) -> Any:
        return getattr(self, name, None)


@dataclass
class CourseModuleRow(MappedRow):
    """A course, optionally with one module, described by one row."""

    external_id: str | None = None
    title: str | None = None
    description: str | None = None
    duration_minutes: int | None = None
    category: str | None = None
    difficulty: str | None = None
    is_active: bool | None = None
    module_external_id: str | None = None
    module_course_external_id: str | None = None
    module_title: str | None = None
    module_type: str | None = None
    module_content_url: str | None = None
    module_order_index: int | None = None
    module_description: str | None = None

    @property
    def has_module(self) -> bool:
        return self.module_external_id is not None


@dataclass
class UserEnrollmentRow(MappedRow):
    """A user and one course enrollment described by one row."""

    user_email: str | None = None
    user_external_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    course_external_id: str | None = None
    role: str | None = None
    due_at: datetime | None = None


ImportRow = Union[CourseModuleRow, UserEnrollmentRow]

_ROW_TYPES: dict[ImportKind, type[MappedRow]] = {
    ImportKind.COURSES_MODULES: CourseModuleRow,
    ImportKind.USERS_ENROLLMENTS: UserEnrollmentRow,
}


def build_row(kind: ImportKind, source: SourceRow, mapping: Mapping[str, str]) -> ImportRow:
    """Apply a mapping to one source row.

    Args:
        kind: Import kind.
        source: Parsed source row.
        mapping: Source column to target field.

    Returns:
        The typed row with its normalized record and conversion problems.
    """
    record = normalize_record(source, mapping)
    raw = {column: _jsonable(clean_cell(value)) for column, value in source.values.items()}
    fields = {target.name: target for target in get_fields(kind)}
    values: dict[str, Any] = {}
    problems: list[RowError] = []

    for source_column, target_name in mapping.items():
        target = fields.get(target_name)
        if target is None:
            continue
        try:
            values[target_name] = convert_value(target, source.values.get(source_column))
        except ConversionError as e:
            problems.append(
                RowError(
                    row_number=source.row_number,
                    code=e.code,
                    message=e.message,
                    field=target_name,
                    raw=raw,
                )
            )

    row_type = _ROW_TYPES[kind]
    return row_type(
        row_number=source.row_number, record=record, raw=raw, problems=problems, **values
    )


def build_rows(
    kind: ImportKind, rows: list[SourceRow], mapping: Mapping[str, str]
) -> list[ImportRow]:
    """Apply a mapping to every source row."""
    return [build_row(kind, row, mapping) for row in rows]
