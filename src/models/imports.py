# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the import pipeline."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    success: bool = False
    error: str


class UploadResponse(BaseModel):
    """Response for a stored upload."""

    success: bool = True
    job_id: str
    kind: str
    status: str
    message: str = "File uploaded successfully"
    file_path: str
    file_size: int
    headers: list[str]


class MappingRequest(BaseModel):
    """Source column to target field mapping."""

    mapping: dict[str, str]


class MappingEntry(BaseModel):
    """One stored mapping pair."""

    model_config = ConfigDict(from_attributes=True)

    position: int
    source_column: str
    target_column: str
    required: bool


class MappingResponse(BaseModel):
    """Response after saving a mapping."""

    success: bool = True
    job_id: str
    status: str
    mapping: list[MappingEntry]


class DryRunRequest(BaseModel):
    """Optional mapping to save before validating."""

    mapping: dict[str, str] | None = None


class CommitRequest(BaseModel):
    """Optional mapping echoed back at commit time.

    When present it must equal the stored mapping.
    """

    mapping: dict[str, str] | None = None


class RowErrorItem(BaseModel):
    """A row error as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    row_number: int
    code: str
    message: str
    field: str | None = None
    raw: dict[str, Any] | None = None


class DryRunResponse(BaseModel):
    """Outcome of a dry-run."""

    success: bool = True
    job_id: str
    rows: int
    errors_count: int
    sample_errors: list[RowErrorItem]
    status: str
    preview: list[dict[str, Any]] = Field(default_factory=list)
    new_users_count: int | None = None
    existing_users_count: int | None = None


class CourseModuleTotals(BaseModel):
    """Counters of a courses/modules commit, serialized in camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    created_courses: int = Field(0, alias="createdCourses")
    updated_courses: int = Field(0, alias="updatedCourses")
    created_modules: int = Field(0, alias="createdModules")
    updated_modules: int = Field(0, alias="updatedModules")
    skipped: int = 0


class CourseModuleCommitResponse(BaseModel):
    """Outcome of a courses/modules commit."""

    success: bool
    job_id: str
    status: str
    totals: CourseModuleTotals
    errors: list[RowErrorItem]


class UserEnrollmentCommitResponse(BaseModel):
    """Outcome of a users/enrollments commit."""

    success: bool
    job_id: str
    status: str
    users_created: int
    enrollments_created: int
    enrollments_updated: int
    total_processed: int
    errors: list[RowErrorItem]


class JobResponse(BaseModel):
    """An import job with its mapping and totals."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: str
    status: str
    original_filename: str
    content_type: str | None = None
    file_path: str
    file_size: int
    created_by: str
    total_rows: int
    created_count: int
    updated_count: int
    skipped_count: int
    error_count: int
    totals: dict[str, Any] = Field(default_factory=dict)
    failure_reason: str | None = None
    mapping: list[MappingEntry] = Field(default_factory=list, validation_alias="mappings")
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    items: list[JobResponse]
    total: int
    limit: int
    offset: int


class RowErrorListResponse(BaseModel):
    """Paginated list of a job's row errors."""

    job_id: str
    items: list[RowErrorItem]
    total: int
    limit: int
    offset: int


class FieldInfo(BaseModel):
    """A target field a column can be mapped to."""

    name: str
    label: str
    type: str
    required: bool
    required_with: str | None = None
    choices: list[str] = Field(default_factory=list)


class FieldCatalogResponse(BaseModel):
    """Target fields of one import kind."""

    kind: str
    fields: list[FieldInfo]
