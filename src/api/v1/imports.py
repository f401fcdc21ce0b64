# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk import API endpoints.

This module provides endpoints for the import pipeline:
- POST /upload - Upload a spreadsheet and create a job
- PUT /jobs/{job_id}/mapping - Save the column mapping
- POST /jobs/{job_id}/dry-run - Validate all rows
- POST /jobs/{job_id}/commit - Write rows into the catalog
- GET /jobs - List the caller's jobs
- GET /jobs/{job_id} - Get one job
- GET /jobs/{job_id}/errors - List a job's row errors
- GET /fields/{kind} - Target fields of an import kind

Every endpoint requires an admin account.

Example:
    POST /api/v1/imports/jobs/3f1c.../dry-run
    {"mapping": {"course_id": "external_id", "course_title": "title"}}
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import DB, AdminUser, Storage
from src.core.config import get_settings
from src.domains.imports import (
    ImportService,
    ImportServiceError,
    InvalidRequestError,
    JobNotFoundError,
    JobStateError,
    StoredFileMissingError,
    get_field_catalog,
    parse_kind,
)
from src.infrastructure.storage import BlobStore
from src.models.imports import (
    CommitRequest,
    CourseModuleCommitResponse,
    DryRunRequest,
    DryRunResponse,
    FieldCatalogResponse,
    JobListResponse,
    JobResponse,
    MappingEntry,
    MappingRequest,
    MappingResponse,
    RowErrorItem,
    RowErrorListResponse,
    UploadResponse,
    UserEnrollmentCommitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession, storage: BlobStore) -> ImportService:
    """Get import service instance.

    Args:
        db: Database session.
        storage: Blob store for uploaded files.

    Returns:
        Configured ImportService instance.
    """
    return ImportService(db=db, storage=storage, settings=get_settings().imports)


def _http_error(error: ImportServiceError) -> HTTPException:
    """Map an import service error to an HTTP error."""
    if isinstance(error, InvalidRequestError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, (JobNotFoundError, StoredFileMissingError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, JobStateError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(error))


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload import file",
    description="Upload a CSV or Excel file and create an import job.",
)
async def upload_file(
    current_user: AdminUser,
    db: DB,
    storage: Storage,
    file: Annotated[UploadFile | None, File(description="CSV or Excel file")] = None,
    kind: Annotated[str | None, Form(description="Import kind")] = None,
) -> UploadResponse:
    """Store an uploaded file and create its job.

    Raises:
        HTTPException: 400 for bad input, 500 when storing fails.
    """
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    content = await file.read()
    logger.info(
        "Upload received: file=%s, size=%d, kind=%s, user=%s",
        file.filename,
        len(content),
        kind,
        current_user.id,
    )

    service = _get_service(db, storage)
    try:
        return await service.upload(
            content=content,
            filename=file.filename,
            content_type=file.content_type,
            kind=kind,
            user_id=current_user.id,
        )
    except ImportServiceError as e:
        raise _http_error(e) from e


@router.put(
    "/jobs/{job_id}/mapping",
    response_model=MappingResponse,
    summary="Save column mapping",
)
async def save_mapping(
    job_id: str,
    data: MappingRequest,
    current_user: AdminUser,
    db: DB,
    storage: Storage,
) -> MappingResponse:
    """Replace a job's mapping."""
    service = _get_service(db, storage)
    try:
        job = await service.save_mapping(job_id, data.mapping, current_user.id)
    except ImportServiceError as e:
        raise _http_error(e) from e

    return MappingResponse(
        job_id=job.id,
        status=job.status,
        mapping=[MappingEntry.model_validate(entry) for entry in job.mappings],
    )


@router.post(
    "/jobs/{job_id}/dry-run",
    response_model=DryRunResponse,
    summary="Validate import",
    description="Validate every row without writing any catalog data.",
)
async def dry_run(
    job_id: str,
    current_user: AdminUser,
    db: DB,
    storage: Storage,
    data: DryRunRequest | None = None,
) -> DryRunResponse:
    """Validate a job's rows and record errors."""
    service = _get_service(db, storage)
    try:
        return await service.dry_run(
            job_id,
            current_user.id,
            mapping=data.mapping if data else None,
        )
    except ImportServiceError as e:
        raise _http_error(e) from e


@router.post(
    "/jobs/{job_id}/commit",
    response_model=CourseModuleCommitResponse | UserEnrollmentCommitResponse,
    summary="Commit import",
    description="Write a validated job into the catalog. Rows are committed independently.",
)
async def commit(
    job_id: str,
    current_user: AdminUser,
    db: DB,
    storage: Storage,
    data: CommitRequest | None = None,
) -> CourseModuleCommitResponse | UserEnrollmentCommitResponse:
    """Commit a validated job."""
    service = _get_service(db, storage)
    try:
        return await service.commit(
            job_id,
            current_user.id,
            mapping=data.mapping if data else None,
        )
    except ImportServiceError as e:
        raise _http_error(e) from e


@router.get(
    "/jobs",
    response_model=JobListResponse,
    summary="List import jobs",
)
async def list_jobs(
    current_user: AdminUser,
    db: DB,
    storage: Storage,
    job_status: Annotated[str | None, Query(alias="status", description="Filter by status")] = None,
    kind: Annotated[str | None, Query(description="Filter by kind")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Maximum results")] = 20,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
) -> JobListResponse:
    """List the caller's jobs, newest first."""
    service = _get_service(db, storage)
    try:
        jobs, total = await service.list_jobs(
            current_user.id,
            status=job_status,
            kind=kind,
            limit=limit,
            offset=offset,
        )
    except ImportServiceError as e:
        raise _http_error(e) from e

    return JobListResponse(
        items=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    summary="Get import job",
)
async def get_job(
    job_id: str,
    current_user: AdminUser,
    db: DB,
    storage: Storage,
) -> JobResponse:
    """Get one job with its mapping and totals."""
    service = _get_service(db, storage)
    try:
        job = await service.get_job(job_id, current_user.id)
    except ImportServiceError as e:
        raise _http_error(e) from e
    return JobResponse.model_validate(job)


@router.get(
    "/jobs/{job_id}/errors",
    response_model=RowErrorListResponse,
    summary="List row errors",
)
async def list_errors(
    job_id: str,
    current_user: AdminUser,
    db: DB,
    storage: Storage,
    limit: Annotated[int, Query(ge=1, le=500, description="Maximum results")] = 100,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
) -> RowErrorListResponse:
    """List the row errors recorded by the last dry-run."""
    service = _get_service(db, storage)
    try:
        errors, total = await service.list_errors(
            job_id, current_user.id, limit=limit, offset=offset
        )
    except ImportServiceError as e:
        raise _http_error(e) from e

    return RowErrorListResponse(
        job_id=job_id,
        items=[RowErrorItem.model_validate(error) for error in errors],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/fields/{kind}",
    response_model=FieldCatalogResponse,
    summary="List target fields",
)
async def list_fields(kind: str, current_user: AdminUser) -> FieldCatalogResponse:
    """Describe the fields a column of this kind can be mapped to."""
    try:
        return get_field_catalog(parse_kind(kind))
    except ImportServiceError as e:
        raise _http_error(e) from e
