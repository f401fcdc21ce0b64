# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Import kinds, job statuses and the target field catalog.

Each import kind exposes a fixed set of target fields. A mapping pairs
source columns from the uploaded file with these targets; the field type
decides how a cell is converted before validation.
"""

from dataclasses import dataclass
from enum import Enum


class ImportKind(str, Enum):
    """Kinds of bulk import."""

    COURSES_MODULES = "courses_modules"
    USERS_ENROLLMENTS = "users_enrollments"


class JobStatus(str, Enum):
    """Lifecycle states of an import job."""

    UPLOADED = "uploaded"
    MAPPED = "mapped"
    VALIDATED = "validated"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


# Statuses in which a mapping may be saved or a dry-run started.
EDITABLE_STATUSES = frozenset({JobStatus.UPLOADED, JobStatus.MAPPED, JobStatus.VALIDATED})


class FieldType(str, Enum):
    """How a mapped cell is converted."""

    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    EMAIL = "email"
    DATE = "date"
    CHOICE = "choice"


MODULE_TYPES = ("video", "pdf", "scorm", "link", "survey")
ENROLLMENT_ROLES = ("student", "staff", "manager")
DIFFICULTY_DEFAULT = "beginner"
MODULE_TYPE_DEFAULT = "pdf"


@dataclass(frozen=True)
class TargetField:
    """A field a source column can be mapped to.

    Attributes:
        name: Target field name used in mappings.
        label: Human readable label.
        field_type: Conversion applied to mapped cells.
        required: Whether the field must be mapped and present in every row.
        choices: Allowed values for CHOICE fields.
        required_with: Field whose presence makes this field required.
    """

    name: str
    label: str
    field_type: FieldType = FieldType.TEXT
    required: bool = False
    choices: tuple[str, ...] = ()
    required_with: str | None = None


COURSE_MODULE_FIELDS: tuple[TargetField, ...] = (
    TargetField("external_id", "Course External ID", required=True),
    TargetField("title", "Course Title", required=True),
    TargetField("description", "Course Description"),
    TargetField("duration_minutes", "Duration (minutes)", FieldType.INTEGER),
    TargetField("category", "Category"),
    TargetField("difficulty", "Difficulty"),
    TargetField("is_active", "Active", FieldType.BOOLEAN),
    TargetField("module_external_id", "Module External ID"),
    TargetField(
        "module_course_external_id",
        "Module Course External ID",
        required_with="module_external_id",
    ),
    TargetField("module_title", "Module Title", required_with="module_external_id"),
    TargetField("module_type", "Module Type", FieldType.CHOICE, choices=MODULE_TYPES),
    TargetField("module_content_url", "Module Content URL"),
    TargetField("module_order_index", "Module Order", FieldType.INTEGER),
    TargetField("module_description", "Module Description"),
)

USER_ENROLLMENT_FIELDS: tuple[TargetField, ...] = (
    TargetField("user_email", "User Email", FieldType.EMAIL, required=True),
    TargetField("user_external_id", "User External ID"),
    TargetField("first_name", "First Name"),
    TargetField("last_name", "Last Name"),
    TargetField("course_external_id", "Course External ID", required=True),
    TargetField(
        "role", "Enrollment Role", FieldType.CHOICE, required=True, choices=ENROLLMENT_ROLES
    ),
    TargetField("due_at", "Due Date", FieldType.DATE),
)

FIELD_CATALOG: dict[ImportKind, tuple[TargetField, ...]] = {
    ImportKind.COURSES_MODULES: COURSE_MODULE_FIELDS,
    ImportKind.USERS_ENROLLMENTS: USER_ENROLLMENT_FIELDS,
}


def get_fields(kind: ImportKind) -> tuple[TargetField, ...]:
    """Get the target fields of an import kind."""
    return FIELD_CATALOG[kind]


def get_field(kind: ImportKind, name: str) -> TargetField | None:
    """Look up one target field by name."""
    for field in FIELD_CATALOG[kind]:
        if field.name == name:
            return field
    return None


def required_field_names(kind: ImportKind) -> list[str]:
    """Names of the fields every mapping of this kind must include."""
    return [field.name for field in FIELD_CATALOG[kind] if field.required]
