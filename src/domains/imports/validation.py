# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Row validation rules.

Validation is pure: it inspects typed rows and returns RowError records.
Checks that need the database, such as whether an enrollment's course
exists, take the looked-up identifiers as arguments.
"""

from typing import Iterable, Mapping

from src.domains.imports.errors import ErrorCode, RowError
from src.domains.imports.fields import ImportKind, get_fields, required_field_names
from src.domains.imports.rows import CourseModuleRow, ImportRow, UserEnrollmentRow


class MappingValidationError(ValueError):
    """Raised when a mapping cannot be used for its import kind."""

    pass


def validate_mapping(
    kind: ImportKind,
    mapping: Mapping[str, str],
    headers: Iterable[str] | None = None,
) -> None:
    """Check that a mapping is usable.

    Args:
        kind: Import kind.
        mapping: Source column to target field.
        headers: Columns of the uploaded file, when known.

    Raises:
        MappingValidationError: If a target is unknown or mapped twice, a
            source column is not in the file, or a required target is missing.
    """
    if not mapping:
        raise MappingValidationError("Mapping is empty")

    known = {target.name for target in get_fields(kind)}
    seen: set[str] = set()
    for source, target in mapping.items():
        if not source or not source.strip():
            raise MappingValidationError("Source column name must not be empty")
        if target not in known:
            raise MappingValidationError(f"Unknown target field for {kind.value}: {target}")
        if target in seen:
            raise MappingValidationError(f"Target field mapped more than once: {target}")
        seen.add(target)

    if headers is not None:
        available = set(headers)
        unknown_sources = [source for source in mapping if source not in available]
        if unknown_sources:
            raise MappingValidationError(
                f"Source columns not found in file: {', '.join(unknown_sources)}"
            )

    missing = [name for name in required_field_names(kind) if name not in seen]
    if missing:
        raise MappingValidationError(f"Required fields not mapped: {', '.join(missing)}")


def _missing(row: ImportRow, name: str, message: str | None = None) -> RowError:
    return RowError(
        row_number=row.row_number,
        code=ErrorCode.MISSING_REQUIRED_FIELD,
        message=message or f"{name} is required",
        field=name,
        raw=row.raw,
    )


def validate_row(kind: ImportKind, row: ImportRow) -> list[RowError]:
    """Validate one typed row.

    Conversion problems come first, followed by missing required values.
    A field that already failed conversion is not reported again as missing.
    """
    errors = list(row.problems)
    failed = {error.field for error in errors}

    for target in get_fields(kind):
        if target.name in failed or row.value(target.name) is not None:
            continue
        if target.required:
            errors.append(_missing(row, target.name))
        elif target.required_with and row.value(target.required_with) is not None:
            errors.append(
                _missing(
                    row,
                    target.name,
                    f"{target.name} is required when {target.required_with} is provided",
                )
            )
    return errors


def check_course_references(
    rows: Iterable[UserEnrollmentRow],
    existing_course_ids: set[str],
    already_failed: set[int] | None = None,
) -> list[RowError]:
    """Report enrollment rows whose course does not exist.

    Args:
        rows: Enrollment rows.
        existing_course_ids: External IDs of courses in the catalog.
        already_failed: Row numbers with other errors; they are skipped.
    """
    errors = []
    skip = already_failed or set()
    for row in rows:
        if row.row_number in skip or row.course_external_id is None:
            continue
        if row.course_external_id not in existing_course_ids:
            errors.append(
                RowError(
                    row_number=row.row_number,
                    code=ErrorCode.COURSE_NOT_FOUND,
                    message=f"Course not found: {row.course_external_id}",
                    field="course_external_id",
                    raw=row.raw,
                )
            )
    return errors


def referenced_course_ids(rows: Iterable[ImportRow]) -> set[str]:
    """External course IDs referenced by enrollment rows."""
    return {
        row.course_external_id
        for row in rows
        if isinstance(row, UserEnrollmentRow) and row.course_external_id is not None
    }


def module_parent_ids(rows: Iterable[CourseModuleRow]) -> set[str]:
    """External course IDs referenced by module parts of course rows."""
    return {
        row.module_course_external_id
        for row in rows
        if row.has_module and row.module_course_external_id is not None
    }
