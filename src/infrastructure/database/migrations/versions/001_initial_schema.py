# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-15

Creates the catalog tables (courses, modules), account tables (users,
profiles, enrollments) and the import pipeline tables (import_jobs,
import_mappings, import_job_errors).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""
    # ==========================================================================
    # 1. courses
    # ==========================================================================
    op.create_table(
        "courses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("duration_minutes", sa.Integer, nullable=True),
        sa.Column("category", sa.String(255), nullable=True),
        sa.Column("difficulty", sa.String(50), nullable=False, server_default="beginner"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_courses_external_id", "courses", ["external_id"], unique=True)

    # ==========================================================================
    # 2. modules
    # ==========================================================================
    op.create_table(
        "modules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column(
            "course_id",
            sa.String(36),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("module_type", sa.String(20), nullable=False, server_default="pdf"),
        sa.Column("content_url", sa.Text, nullable=True),
        sa.Column("order_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("description", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "module_type IN ('video', 'pdf', 'scorm', 'link', 'survey')",
            name="valid_module_type",
        ),
    )
    op.create_index("ix_modules_external_id", "modules", ["external_id"], unique=True)
    op.create_index("ix_modules_course_id", "modules", ["course_id"])

    # ==========================================================================
    # 3. users / profiles
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="learner"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "profiles",
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_profiles_external_id", "profiles", ["external_id"])

    # ==========================================================================
    # 4. enrollments
    # ==========================================================================
    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            sa.String(36),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
        sa.CheckConstraint(
            "role IN ('student', 'staff', 'manager')",
            name="valid_enrollment_role",
        ),
    )
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])

    # ==========================================================================
    # 5. import_jobs
    # ==========================================================================
    op.create_table(
        "import_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="uploaded"),
        sa.Column("file_path", sa.Text, nullable=False),
        sa.Column("original_filename", sa.String(500), nullable=False),
        sa.Column("content_type", sa.String(255), nullable=True),
        sa.Column("file_size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_by", sa.String(36), nullable=False),
        sa.Column("total_rows", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("totals", sa.JSON, nullable=False),
        sa.Column("failure_reason", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "kind IN ('courses_modules', 'users_enrollments')",
            name="valid_import_kind",
        ),
        sa.CheckConstraint(
            "status IN ('uploaded', 'mapped', 'validated', 'processing', "
            "'completed', 'completed_with_errors', 'failed')",
            name="valid_import_status",
        ),
    )
    op.create_index("ix_import_jobs_kind", "import_jobs", ["kind"])
    op.create_index("ix_import_jobs_status", "import_jobs", ["status"])
    op.create_index("ix_import_jobs_created_by", "import_jobs", ["created_by"])

    # ==========================================================================
    # 6. import_mappings / import_job_errors
    # ==========================================================================
    op.create_table(
        "import_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "job_id",
            sa.String(36),
            sa.ForeignKey("import_jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("source_column", sa.String(255), nullable=False),
        sa.Column("target_column", sa.String(255), nullable=False),
        sa.Column("required", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_import_mappings_job_id", "import_mappings", ["job_id"])

    op.create_table(
        "import_job_errors",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "job_id",
            sa.String(36),
            sa.ForeignKey("import_jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("row_number", sa.Integer, nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("raw", sa.JSON, nullable=True),
    )
    op.create_index("ix_import_job_errors_job_id", "import_job_errors", ["job_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("import_job_errors")
    op.drop_table("import_mappings")
    op.drop_table("import_jobs")
    op.drop_table("enrollments")
    op.drop_table("profiles")
    op.drop_table("users")
    op.drop_table("modules")
    op.drop_table("courses")
