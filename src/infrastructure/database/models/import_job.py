# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Import job models.

An import job tracks one file through upload, mapping, dry-run and
commit. Mappings and row errors are replaced wholesale by the stage that
owns them.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ImportJob(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One attempt to import a file."""

    __tablename__ = "import_jobs"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('courses_modules', 'users_enrollments')",
            name="valid_import_kind",
        ),
        CheckConstraint(
            "status IN ('uploaded', 'mapped', 'validated', 'processing', "
            "'completed', 'completed_with_errors', 'failed')",
            name="valid_import_status",
        ),
    )

    kind: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(32), default="uploaded", index=True)
    file_path: Mapped[str] = mapped_column(Text)
    original_filename: Mapped[str] = mapped_column(String(500))
    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, default=0)
    created_by: Mapped[str] = mapped_column(String(36), index=True)

    total_rows: Mapped[int] = mapped_column(Integer, default=0)
    created_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_count: Mapped[int] = mapped_column(Integer, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    totals: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    mappings: Mapped[list["ImportMapping"]] = relationship(
        back_populates="job",
        order_by="ImportMapping.position",
        cascade="all, delete-orphan",
    )


class ImportMapping(UUIDPrimaryKeyMixin, Base):
    """One source column to target field pair of a job's mapping."""

    __tablename__ = "import_mappings"

    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("import_jobs.id", ondelete="CASCADE"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    source_column: Mapped[str] = mapped_column(String(255))
    target_column: Mapped[str] = mapped_column(String(255))
    required: Mapped[bool] = mapped_column(Boolean, default=False)

    job: Mapped[ImportJob] = relationship(back_populates="mappings")


class ImportJobError(UUIDPrimaryKeyMixin, Base):
    """A validation error recorded against one row by a dry-run."""

    __tablename__ = "import_job_errors"

    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("import_jobs.id", ondelete="CASCADE"), index=True
    )
    row_number: Mapped[int] = mapped_column(Integer)
    code: Mapped[str] = mapped_column(String(64))
    message: Mapped[str] = mapped_column(Text)
    raw: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
