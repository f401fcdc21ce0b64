# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Import pipeline service.

Drives a job through its four stages:

1. upload: store the file and create the job (uploaded)
2. save_mapping: persist the column mapping (mapped)
3. dry_run: validate every row and record errors (validated when clean)
4. commit: upsert target entities row by row
   (completed, completed_with_errors or failed)

Every stage re-reads the stored file. Jobs are visible only to the user
who created them.

Example:
    >>> service = ImportService(db, storage, settings.imports)
    >>> upload = await service.upload(content, "courses.csv", "text/csv", "courses_modules", user_id)
    >>> await service.save_mapping(upload.job_id, {"course_id": "external_id", "name": "title"}, user_id)
    >>> result = await service.dry_run(upload.job_id, user_id)
    >>> result.status
    'validated'
"""

import logging
from pathlib import PurePosixPath
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.config.settings import ImportSettings
from src.domains.imports.committers import (
    CourseModuleCommitter,
    CourseModuleResult,
    UserEnrollmentCommitter,
    UserEnrollmentResult,
)
from src.domains.imports.errors import RowError
from src.domains.imports.fields import (
    EDITABLE_STATUSES,
    ImportKind,
    JobStatus,
    get_field,
    get_fields,
)
from src.domains.imports.parsing import (
    FileParseError,
    ParsedTable,
    is_allowed_file,
    parse_table_async,
)
from src.domains.imports.rows import ImportRow, UserEnrollmentRow, build_rows
from src.domains.imports.validation import (
    MappingValidationError,
    check_course_references,
    referenced_course_ids,
    validate_mapping,
    validate_row,
)
from src.infrastructure.database.models import (
    Course,
    ImportJob,
    ImportJobError,
    ImportMapping,
    User,
)
from src.infrastructure.storage import BlobNotFoundError, BlobStore, StorageError
from src.models.imports import (
    CourseModuleCommitResponse,
    CourseModuleTotals,
    DryRunResponse,
    FieldCatalogResponse,
    FieldInfo,
    RowErrorItem,
    UploadResponse,
    UserEnrollmentCommitResponse,
)
from src.utils.datetime import storage_timestamp
from src.utils.logging import bind_context

logger = logging.getLogger(__name__)


class ImportServiceError(Exception):
    """Base exception for import pipeline errors."""

    pass


class InvalidRequestError(ImportServiceError):
    """Raised when the request itself is unusable."""

    pass


class InvalidFileError(InvalidRequestError):
    """Raised when an uploaded or stored file is not an acceptable table."""

    pass


class InvalidMappingError(InvalidRequestError):
    """Raised when a mapping is missing, unknown or incomplete."""

    pass


class JobNotFoundError(ImportServiceError):
    """Raised when a job does not exist or belongs to another user."""

    pass


class StoredFileMissingError(ImportServiceError):
    """Raised when the job's file is no longer in the blob store."""

    pass


class JobStateError(ImportServiceError):
    """Raised when a stage is not allowed in the job's current status."""

    pass


class StorageWriteError(ImportServiceError):
    """Raised when an upload cannot be stored."""

    pass


class JobCreationError(ImportServiceError):
    """Raised when the job record cannot be created after storing a file."""

    pass


class ImportJobFailedError(ImportServiceError):
    """Raised when a stage fails unexpectedly and the job is marked failed."""

    pass


def parse_kind(value: str | None) -> ImportKind:
    """Parse an import kind.

    Raises:
        InvalidRequestError: If the kind is missing or unknown.
    """
    if not value:
        raise InvalidRequestError("kind is required")
    try:
        return ImportKind(value)
    except ValueError as e:
        allowed = ", ".join(kind.value for kind in ImportKind)
        raise InvalidRequestError(f"Unknown kind: {value}. Expected one of: {allowed}") from e


def get_field_catalog(kind: ImportKind) -> FieldCatalogResponse:
    """Describe the target fields of a kind."""
    return FieldCatalogResponse(
        kind=kind.value,
        fields=[
            FieldInfo(
                name=target.name,
                label=target.label,
                type=target.field_type.value,
                required=target.required,
                required_with=target.required_with,
                choices=list(target.choices),
            )
            for target in get_fields(kind)
        ],
    )


def _error_items(errors: list[RowError]) -> list[RowErrorItem]:
    return [RowErrorItem(**error.to_dict()) for error in errors]


def _storage_key(user_id: str, filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name or "upload"
    return f"{user_id}/{storage_timestamp()}-{name}"


class ImportService:
    """Service for the bulk import pipeline.

    Attributes:
        _db: Async database session.
        _storage: Blob store holding uploaded files.
        _settings: Import limits.
    """

    def __init__(self, db: AsyncSession, storage: BlobStore, settings: ImportSettings) -> None:
        """Initialize the import service.

        Args:
            db: Async database session.
            storage: Blob store for uploaded files.
            settings: Import limits.
        """
        self._db = db
        self._storage = storage
        self._settings = settings

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload(
        self,
        content: bytes,
        filename: str | None,
        content_type: str | None,
        kind: str | None,
        user_id: str,
    ) -> UploadResponse:
        """Store an uploaded file and create its job.

        Args:
            content: File bytes.
            filename: Original file name.
            content_type: Reported MIME type.
            kind: Import kind.
            user_id: Uploading user.

        Returns:
            UploadResponse with the job id and detected headers.

        Raises:
            InvalidRequestError: If the kind is missing or unknown.
            InvalidFileError: If the file is empty, too large, of a
                disallowed type or not readable as a table.
            StorageWriteError: If the file cannot be stored.
            JobCreationError: If the job cannot be created.
        """
        import_kind = parse_kind(kind)
        if not filename:
            raise InvalidRequestError("No file provided")
        if not content:
            raise InvalidFileError("File is empty")
        if not is_allowed_file(filename, content_type):
            raise InvalidFileError(
                "Invalid file type. Only CSV and Excel files (.csv, .xls, .xlsx) are allowed"
            )
        if len(content) > self._settings.max_file_size_bytes:
            raise InvalidFileError(
                f"File too large. Maximum size is {self._settings.max_file_size_mb}MB"
            )

        try:
            table = await parse_table_async(content, filename, content_type)
        except FileParseError as e:
            raise InvalidFileError(f"Unable to parse file: {e}") from e

        key = _storage_key(user_id, filename)
        try:
            await self._storage.put(key, content, content_type)
        except StorageError as e:
            logger.error("Failed to store upload: key=%s, error=%s", key, str(e))
            raise StorageWriteError("Failed to upload file") from e

        job = ImportJob(
            kind=import_kind.value,
            status=JobStatus.UPLOADED.value,
            file_path=key,
            original_filename=filename,
            content_type=content_type,
            file_size=len(content),
            created_by=user_id,
            total_rows=len(table.rows),
            totals={},
        )
        try:
            self._db.add(job)
            await self._db.commit()
        except Exception as e:
            await self._db.rollback()
            logger.error("Failed to create import job: key=%s, error=%s", key, str(e))
            try:
                await self._storage.delete(key)
            except StorageError as cleanup_error:
                logger.warning(
                    "Failed to remove orphaned upload: key=%s, error=%s",
                    key,
                    str(cleanup_error),
                )
            raise JobCreationError("Failed to create import job") from e

        logger.info(
            "Import job created: id=%s, kind=%s, file=%s, rows=%d",
            job.id,
            job.kind,
            key,
            job.total_rows,
        )
        return UploadResponse(
            job_id=job.id,
            kind=job.kind,
            status=job.status,
            file_path=key,
            file_size=job.file_size,
            headers=table.headers,
        )

    # =========================================================================
    # Mapping
    # =========================================================================

    async def save_mapping(self, job_id: str, mapping: dict[str, str], user_id: str) -> ImportJob:
        """Replace a job's mapping and move it to mapped.

        Raises:
            JobNotFoundError: If the job is not visible to the user.
            JobStateError: If the job is past validation.
            InvalidMappingError: If the mapping is unusable.
        """
        job = await self._get_job(job_id, user_id)
        self._ensure_editable(job)
        self._replace_mapping(job, mapping)
        job.status = JobStatus.MAPPED.value
        await self._db.commit()

        logger.info("Mapping saved: job=%s, columns=%d", job.id, len(mapping))
        return job

    def _replace_mapping(self, job: ImportJob, mapping: dict[str, str]) -> None:
        kind = ImportKind(job.kind)
        try:
            validate_mapping(kind, mapping)
        except MappingValidationError as e:
            raise InvalidMappingError(str(e)) from e

        job.mappings = [
            ImportMapping(
                position=position,
                source_column=source,
                target_column=target,
                required=get_field(kind, target).required,
            )
            for position, (source, target) in enumerate(mapping.items())
        ]

    @staticmethod
    def _mapping_of(job: ImportJob) -> dict[str, str]:
        return {entry.source_column: entry.target_column for entry in job.mappings}

    # =========================================================================
    # Dry-run
    # =========================================================================

    async def dry_run(
        self,
        job_id: str,
        user_id: str,
        mapping: dict[str, str] | None = None,
    ) -> DryRunResponse:
        """Validate every row of a job's file.

        Args:
            job_id: Job to validate.
            user_id: Requesting user.
            mapping: Mapping to save first; the stored one is used otherwise.

        Returns:
            DryRunResponse with error samples and a preview.

        Raises:
            JobNotFoundError: If the job is not visible to the user.
            JobStateError: If the job is past validation.
            InvalidMappingError: If no usable mapping is available.
            StoredFileMissingError: If the file is gone (job marked failed).
            InvalidFileError: If the file cannot be parsed (job marked failed).
            ImportJobFailedError: On unexpected errors (job marked failed).
        """
        job = await self._get_job(job_id, user_id)
        self._ensure_editable(job)
        bind_context(job_id=job.id, import_kind=job.kind)

        if mapping:
            self._replace_mapping(job, mapping)
        elif not job.mappings:
            raise InvalidMappingError("No mapping provided and none saved for this job")

        kind = ImportKind(job.kind)
        active_mapping = self._mapping_of(job)
        try:
            validate_mapping(kind, active_mapping)
        except MappingValidationError as e:
            raise InvalidMappingError(str(e)) from e

        table = await self._load_table(job)
        try:
            validate_mapping(kind, active_mapping, table.headers)
        except MappingValidationError as e:
            await self._db.rollback()
            raise InvalidMappingError(str(e)) from e

        try:
            rows = build_rows(kind, table.rows, active_mapping)
            errors = await self._validate_rows(kind, rows)

            await self._db.execute(delete(ImportJobError).where(ImportJobError.job_id == job.id))
            for error in errors:
                self._db.add(
                    ImportJobError(
                        job_id=job.id,
                        row_number=error.row_number,
                        code=error.code.value,
                        message=error.message,
                        raw=error.raw,
                    )
                )

            job.total_rows = len(rows)
            job.error_count = len(errors)
            job.failure_reason = None
            if not errors:
                job.status = JobStatus.VALIDATED.value
            elif job.status == JobStatus.VALIDATED.value:
                job.status = JobStatus.MAPPED.value

            extra: dict[str, Any] = {}
            if kind == ImportKind.USERS_ENROLLMENTS:
                extra = await self._count_users(rows, errors)

            await self._db.commit()
        except Exception as e:
            await self._fail_job(job_id, "Dry-run failed", e)
            raise ImportJobFailedError("Dry-run failed") from e

        logger.info(
            "Dry-run finished: job=%s, rows=%d, errors=%d, status=%s",
            job.id,
            len(rows),
            len(errors),
            job.status,
        )
        return DryRunResponse(
            job_id=job.id,
            rows=len(rows),
            errors_count=len(errors),
            sample_errors=_error_items(errors[: self._settings.sample_errors_limit]),
            status=job.status,
            preview=[row.record for row in rows[: self._settings.preview_rows_limit]],
            **extra,
        )

    async def _validate_rows(self, kind: ImportKind, rows: list[ImportRow]) -> list[RowError]:
        errors: list[RowError] = []
        for row in rows:
            errors.extend(validate_row(kind, row))

        if kind == ImportKind.USERS_ENROLLMENTS:
            failed = {error.row_number for error in errors}
            existing = await self._existing_course_ids(referenced_course_ids(rows))
            errors.extend(check_course_references(rows, existing, failed))

        errors.sort(key=lambda error: error.row_number)
        return errors

    async def _existing_course_ids(self, external_ids: set[str]) -> set[str]:
        if not external_ids:
            return set()
        stmt = select(Course.external_id).where(Course.external_id.in_(external_ids))
        result = await self._db.execute(stmt)
        return set(result.scalars().all())

    async def _count_users(
        self, rows: list[ImportRow], errors: list[RowError]
    ) -> dict[str, int]:
        """Count distinct new and existing accounts among rows that passed validation."""
        failed = {error.row_number for error in errors}
        emails = {
            row.user_email
            for row in rows
            if isinstance(row, UserEnrollmentRow)
            and row.user_email is not None
            and row.row_number not in failed
        }
        existing = 0
        if emails:
            stmt = select(func.count()).select_from(User).where(User.email.in_(emails))
            existing = (await self._db.execute(stmt)).scalar_one()
        return {
            "new_users_count": len(emails) - existing,
            "existing_users_count": existing,
        }

    # =========================================================================
    # Commit
    # =========================================================================

    async def commit(
        self,
        job_id: str,
        user_id: str,
        mapping: dict[str, str] | None = None,
    ) -> CourseModuleCommitResponse | UserEnrollmentCommitResponse:
        """Write a validated job into the catalog.

        Args:
            job_id: Job to commit.
            user_id: Committing user.
            mapping: Mapping echoed by the client; must equal the stored one.

        Returns:
            Kind-specific commit response.

        Raises:
            JobNotFoundError: If the job is not visible to the user.
            JobStateError: If the job is not validated or the mapping changed.
            StoredFileMissingError: If the file is gone (job marked failed).
            InvalidFileError: If the file cannot be parsed (job marked failed).
            ImportJobFailedError: On unexpected errors (job marked failed).
        """
        job = await self._get_job(job_id, user_id)
        bind_context(job_id=job.id, import_kind=job.kind)
        if job.status != JobStatus.VALIDATED.value:
            raise JobStateError(
                f"Job must be validated before commit (current status: {job.status})"
            )

        active_mapping = self._mapping_of(job)
        if mapping is not None and mapping != active_mapping:
            raise JobStateError("Mapping differs from the validated mapping; run a dry-run again")

        job.status = JobStatus.PROCESSING.value
        await self._db.commit()
        logger.info("Commit started: job=%s, kind=%s", job.id, job.kind)

        kind = ImportKind(job.kind)
        table = await self._load_table(job)

        try:
            rows = build_rows(kind, table.rows, active_mapping)
            valid_rows: list[ImportRow] = []
            invalid: list[RowError] = []
            for row in rows:
                row_errors = validate_row(kind, row)
                if row_errors:
                    invalid.extend(row_errors)
                else:
                    valid_rows.append(row)

            if kind == ImportKind.COURSES_MODULES:
                committer = CourseModuleCommitter(self._db, created_by=user_id, job_id=job.id)
                result: CourseModuleResult | UserEnrollmentResult = await committer.commit(
                    valid_rows
                )
            else:
                user_committer = UserEnrollmentCommitter(self._db, job_id=job.id)
                result = await user_committer.commit(valid_rows)

            errors = sorted(invalid + result.errors, key=lambda error: error.row_number)
            self._record_totals(job, kind, len(rows), result, errors)
            await self._db.commit()
        except Exception as e:
            await self._fail_job(job_id, "Commit failed", e)
            raise ImportJobFailedError("Commit failed") from e

        logger.info(
            "Commit finished: job=%s, status=%s, created=%d, updated=%d, skipped=%d, errors=%d",
            job.id,
            job.status,
            job.created_count,
            job.updated_count,
            job.skipped_count,
            job.error_count,
        )
        return self._commit_response(job, result, errors)

    def _record_totals(
        self,
        job: ImportJob,
        kind: ImportKind,
        row_count: int,
        result: CourseModuleResult | UserEnrollmentResult,
        errors: list[RowError],
    ) -> None:
        job.total_rows = row_count
        job.error_count = len(errors)

        if isinstance(result, CourseModuleResult):
            job.created_count = result.created_courses + result.created_modules
            job.updated_count = result.updated_courses + result.updated_modules
            job.skipped_count = result.skipped
            job.totals = CourseModuleTotals(
                created_courses=result.created_courses,
                updated_courses=result.updated_courses,
                created_modules=result.created_modules,
                updated_modules=result.updated_modules,
                skipped=result.skipped,
            ).model_dump(by_alias=True)
        else:
            job.created_count = result.enrollments_created
            job.updated_count = result.enrollments_updated
            job.skipped_count = 0
            job.totals = {
                "users_created": result.users_created,
                "enrollments_created": result.enrollments_created,
                "enrollments_updated": result.enrollments_updated,
                "total_processed": result.total_processed,
            }

        if not errors:
            job.status = JobStatus.COMPLETED.value
            job.failure_reason = None
        elif result.succeeded or (isinstance(result, CourseModuleResult) and result.skipped):
            job.status = JobStatus.COMPLETED_WITH_ERRORS.value
            job.failure_reason = None
        else:
            job.status = JobStatus.FAILED.value
            job.failure_reason = "No rows were imported"

    def _commit_response(
        self,
        job: ImportJob,
        result: CourseModuleResult | UserEnrollmentResult,
        errors: list[RowError],
    ) -> CourseModuleCommitResponse | UserEnrollmentCommitResponse:
        capped = _error_items(errors[: self._settings.commit_errors_limit])
        success = job.status != JobStatus.FAILED.value

        if isinstance(result, CourseModuleResult):
            return CourseModuleCommitResponse(
                success=success,
                job_id=job.id,
                status=job.status,
                totals=CourseModuleTotals(**job.totals),
                errors=capped,
            )
        return UserEnrollmentCommitResponse(
            success=success,
            job_id=job.id,
            status=job.status,
            users_created=result.users_created,
            enrollments_created=result.enrollments_created,
            enrollments_updated=result.enrollments_updated,
            total_processed=result.total_processed,
            errors=capped,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_job(self, job_id: str, user_id: str) -> ImportJob:
        """Get one of the user's jobs with its mapping.

        Raises:
            JobNotFoundError: If the job is not visible to the user.
        """
        return await self._get_job(job_id, user_id)

    async def list_jobs(
        self,
        user_id: str,
        status: str | None = None,
        kind: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[ImportJob], int]:
        """List the user's jobs, newest first.

        Returns:
            The page of jobs and the total count.
        """
        conditions = [ImportJob.created_by == user_id]
        if status:
            conditions.append(ImportJob.status == status)
        if kind:
            conditions.append(ImportJob.kind == parse_kind(kind).value)

        count_stmt = select(func.count()).select_from(ImportJob).where(*conditions)
        total = (await self._db.execute(count_stmt)).scalar_one()

        stmt = (
            select(ImportJob)
            .options(selectinload(ImportJob.mappings))
            .where(*conditions)
            .order_by(ImportJob.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all()), total

    async def list_errors(
        self,
        job_id: str,
        user_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[ImportJobError], int]:
        """List a job's recorded row errors ordered by row number.

        Raises:
            JobNotFoundError: If the job is not visible to the user.
        """
        job = await self._get_job(job_id, user_id)

        count_stmt = (
            select(func.count()).select_from(ImportJobError).where(ImportJobError.job_id == job.id)
        )
        total = (await self._db.execute(count_stmt)).scalar_one()

        stmt = (
            select(ImportJobError)
            .where(ImportJobError.job_id == job.id)
            .order_by(ImportJobError.row_number, ImportJobError.code)
            .limit(limit)
            .offset(offset)
        )
        result = await self._db.execute(stmt)
        return list(result.scalars().all()), total

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_job(self, job_id: str, user_id: str) -> ImportJob:
        stmt = (
            select(ImportJob)
            .options(selectinload(ImportJob.mappings))
            .where(ImportJob.id == job_id, ImportJob.created_by == user_id)
        )
        result = await self._db.execute(stmt)
        job = result.scalar_one_or_none()
        if job is None:
            raise JobNotFoundError(f"Import job not found: {job_id}")
        return job

    @staticmethod
    def _ensure_editable(job: ImportJob) -> None:
        if JobStatus(job.status) not in EDITABLE_STATUSES:
            raise JobStateError(f"Job cannot be changed in status {job.status}")

    async def _load_table(self, job: ImportJob) -> ParsedTable:
        """Download and parse the job's file.

        The job is marked failed when the file is missing or unreadable.
        """
        try:
            content = await self._storage.get(job.file_path)
        except BlobNotFoundError as e:
            await self._fail_job(job.id, "Stored file not found", e)
            raise StoredFileMissingError(f"Stored file not found: {job.file_path}") from e
        except StorageError as e:
            await self._fail_job(job.id, "Failed to download file", e)
            raise ImportJobFailedError("Failed to download file") from e

        try:
            return await parse_table_async(content, job.original_filename, job.content_type)
        except FileParseError as e:
            await self._fail_job(job.id, f"Unable to parse file: {e}", e)
            raise InvalidFileError(f"Unable to parse file: {e}") from e

    async def _fail_job(self, job_id: str, reason: str, error: Exception) -> None:
        """Roll back pending work and mark the job failed in a new transaction."""
        logger.exception("Import job failed: job=%s, reason=%s", job_id, reason, exc_info=error)
        await self._db.rollback()
        job = await self._db.get(ImportJob, job_id)
        if job is None:
            return
        job.status = JobStatus.FAILED.value
        job.failure_reason = reason
        await self._db.commit()
