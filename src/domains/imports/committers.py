# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Commit executors that write validated rows into the catalog.

Each row runs inside its own SAVEPOINT. A failing row is rolled back and
recorded; rows before and after it are unaffected. The caller owns the
outer transaction and commits it once all rows are processed.

Upserts follow the usual pattern: select by natural key, update when found,
otherwise add and flush.

Example:
    >>> committer = CourseModuleCommitter(db, created_by=user_id, job_id=job.id)
    >>> result = await committer.commit(rows)
    >>> result.created_courses
    3
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.imports.errors import ErrorCode, RowError
from src.domains.imports.fields import DIFFICULTY_DEFAULT, MODULE_TYPE_DEFAULT
from src.domains.imports.rows import CourseModuleRow, UserEnrollmentRow
from src.domains.imports.validation import module_parent_ids
from src.infrastructure.database.models import Course, Enrollment, Module, Profile, User

logger = logging.getLogger(__name__)


@dataclass
class CourseModuleResult:
    """Counters and row errors of a courses/modules commit."""

    created_courses: int = 0
    updated_courses: int = 0
    created_modules: int = 0
    updated_modules: int = 0
    skipped: int = 0
    errors: list[RowError] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return (
            self.created_courses
            + self.updated_courses
            + self.created_modules
            + self.updated_modules
        )


@dataclass
class UserEnrollmentResult:
    """Counters and row errors of a users/enrollments commit."""

    users_created: int = 0
    enrollments_created: int = 0
    enrollments_updated: int = 0
    total_processed: int = 0
    errors: list[RowError] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.enrollments_created + self.enrollments_updated


def _row_failed(row_number: int, raw: dict, error: Exception) -> RowError:
    return RowError(
        row_number=row_number,
        code=ErrorCode.ROW_FAILED,
        message=str(error) or error.__class__.__name__,
        raw=raw,
    )


class CourseModuleCommitter:
    """Upserts courses and their modules.

    Course rows are de-duplicated by external id, the last row winning.
    Modules are written after all courses so a module may reference a
    course defined further down the file.

    Attributes:
        _db: Async database session.
        _created_by: User id stamped on new courses.
        _job_id: Job id used in log messages.
    """

    def __init__(self, db: AsyncSession, created_by: str, job_id: str | None = None) -> None:
        self._db = db
        self._created_by = created_by
        self._job_id = job_id

    async def commit(self, rows: list[CourseModuleRow]) -> CourseModuleResult:
        """Write all rows.

        Args:
            rows: Valid course/module rows.

        Returns:
            Counters and per-row errors.
        """
        result = CourseModuleResult()
        course_ids: dict[str, str] = {}

        latest: dict[str, CourseModuleRow] = {}
        for row in rows:
            if row.external_id is not None and row.title is not None:
                latest[row.external_id] = row

        for external_id, row in latest.items():
            try:
                async with self._db.begin_nested():
                    course, created = await self._upsert_course(row)
            except Exception as e:
                logger.warning(
                    "Course row failed: job=%s, row=%d, error=%s",
                    self._job_id,
                    row.row_number,
                    str(e),
                )
                result.errors.append(_row_failed(row.row_number, row.raw, e))
                continue

            course_ids[external_id] = course.id
            if created:
                result.created_courses += 1
            else:
                result.updated_courses += 1

        course_ids.update(
            await self._find_course_ids(module_parent_ids(rows) - course_ids.keys())
        )

        for row in rows:
            if not row.has_module:
                continue
            if row.module_course_external_id is None or row.module_title is None:
                continue

            course_id = course_ids.get(row.module_course_external_id)
            if course_id is None:
                logger.warning(
                    "Module skipped, course not found: job=%s, row=%d, course=%s",
                    self._job_id,
                    row.row_number,
                    row.module_course_external_id,
                )
                result.skipped += 1
                continue

            try:
                async with self._db.begin_nested():
                    created = await self._upsert_module(row, course_id)
            except Exception as e:
                logger.warning(
                    "Module row failed: job=%s, row=%d, error=%s",
                    self._job_id,
                    row.row_number,
                    str(e),
                )
                result.errors.append(_row_failed(row.row_number, row.raw, e))
                continue

            if created:
                result.created_modules += 1
            else:
                result.updated_modules += 1

        return result

    async def _find_course_ids(self, external_ids: set[str]) -> dict[str, str]:
        """Map existing external ids to course ids in one query."""
        if not external_ids:
            return {}
        stmt = select(Course.external_id, Course.id).where(Course.external_id.in_(external_ids))
        result = await self._db.execute(stmt)
        return {external_id: course_id for external_id, course_id in result.all()}

    async def _upsert_course(self, row: CourseModuleRow) -> tuple[Course, bool]:
        """Upsert a course by external id.

        Returns:
            The course and whether it was created.
        """
        stmt = select(Course).where(Course.external_id == row.external_id)
        result = await self._db.execute(stmt)
        existing = result.scalar_one_or_none()

        if existing:
            existing.title = row.title
            existing.description = row.description
            existing.duration_minutes = row.duration_minutes
            existing.category = row.category
            existing.difficulty = row.difficulty or DIFFICULTY_DEFAULT
            existing.is_active = True if row.is_active is None else row.is_active
            await self._db.flush()
            return existing, False

        course = Course(
            external_id=row.external_id,
            title=row.title,
            description=row.description,
            duration_minutes=row.duration_minutes,
            category=row.category,
            difficulty=row.difficulty or DIFFICULTY_DEFAULT,
            is_active=True if row.is_active is None else row.is_active,
            created_by=self._created_by,
        )
        self._db.add(course)
        await self._db.flush()
        return course, True

    async def _upsert_module(self, row: CourseModuleRow, course_id: str) -> bool:
        """Upsert a module by external id.

        Returns:
            True if the module was created.
        """
        stmt = select(Module).where(Module.external_id == row.module_external_id)
        result = await self._db.execute(stmt)
        existing = result.scalar_one_or_none()

        order_index = row.module_order_index if row.module_order_index is not None else 0
        module_type = row.module_type or MODULE_TYPE_DEFAULT

        if existing:
            existing.course_id = course_id
            existing.title = row.module_title
            existing.module_type = module_type
            existing.content_url = row.module_content_url
            existing.order_index = order_index
            existing.description = row.module_description
            await self._db.flush()
            return False

        self._db.add(
            Module(
                external_id=row.module_external_id,
                course_id=course_id,
                title=row.module_title,
                module_type=module_type,
                content_url=row.module_content_url,
                order_index=order_index,
                description=row.module_description,
            )
        )
        await self._db.flush()
        return True


class _CourseMissing(Exception):
    pass


class UserEnrollmentCommitter:
    """Creates accounts and upserts enrollments.

    Accounts are looked up by lower-cased email. An account created for an
    earlier row is reused by later rows with the same email.

    Attributes:
        _db: Async database session.
        _job_id: Job id used in log messages.
    """

    def __init__(self, db: AsyncSession, job_id: str | None = None) -> None:
        self._db = db
        self._job_id = job_id

    async def commit(self, rows: list[UserEnrollmentRow]) -> UserEnrollmentResult:
        """Write all rows.

        Args:
            rows: Valid user/enrollment rows.

        Returns:
            Counters and per-row errors.
        """
        result = UserEnrollmentResult()

        for row in rows:
            result.total_processed += 1
            try:
                async with self._db.begin_nested():
                    user_id, user_created = await self._get_or_create_user(row)
            except Exception as e:
                logger.warning(
                    "User row failed: job=%s, row=%d, error=%s",
                    self._job_id,
                    row.row_number,
                    str(e),
                )
                result.errors.append(_row_failed(row.row_number, row.raw, e))
                continue

            if user_created:
                result.users_created += 1

            try:
                async with self._db.begin_nested():
                    enrollment_created = await self._upsert_enrollment(row, user_id)
            except _CourseMissing:
                result.errors.append(
                    RowError(
                        row_number=row.row_number,
                        code=ErrorCode.COURSE_NOT_FOUND,
                        message=f"Course not found: {row.course_external_id}",
                        field="course_external_id",
                        raw=row.raw,
                    )
                )
                continue
            except Exception as e:
                logger.warning(
                    "Enrollment row failed: job=%s, row=%d, error=%s",
                    self._job_id,
                    row.row_number,
                    str(e),
                )
                result.errors.append(_row_failed(row.row_number, row.raw, e))
                continue

            if enrollment_created:
                result.enrollments_created += 1
            else:
                result.enrollments_updated += 1

        return result

    async def _get_or_create_user(self, row: UserEnrollmentRow) -> tuple[str, bool]:
        """Find the account for a row or create it with its profile.

        Returns:
            The user id and whether the account was created.
        """
        stmt = select(User).where(User.email == row.user_email)
        result = await self._db.execute(stmt)
        user = result.scalar_one_or_none()

        if user is None:
            user = User(email=row.user_email, role="learner", status="active")
            self._db.add(user)
            await self._db.flush()
            self._db.add(
                Profile(
                    user_id=user.id,
                    external_id=row.user_external_id,
                    first_name=row.first_name,
                    last_name=row.last_name,
                )
            )
            await self._db.flush()
            return user.id, True

        if any(v is not None for v in (row.user_external_id, row.first_name, row.last_name)):
            await self._refresh_profile(user.id, row)
        return user.id, False

    async def _refresh_profile(self, user_id: str, row: UserEnrollmentRow) -> None:
        profile = await self._db.get(Profile, user_id)
        if profile is None:
            profile = Profile(user_id=user_id)
            self._db.add(profile)

        if row.user_external_id is not None:
            profile.external_id = row.user_external_id
        if row.first_name is not None:
            profile.first_name = row.first_name
        if row.last_name is not None:
            profile.last_name = row.last_name
        await self._db.flush()

    async def _upsert_enrollment(self, row: UserEnrollmentRow, user_id: str) -> bool:
        """Upsert the enrollment keyed on (user, course).

        Returns:
            True if the enrollment was created.

        Raises:
            _CourseMissing: If the course does not exist.
        """
        stmt = select(Course.id).where(Course.external_id == row.course_external_id)
        course_id = (await self._db.execute(stmt)).scalar_one_or_none()
        if course_id is None:
            raise _CourseMissing(row.course_external_id)

        stmt = select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
        )
        existing = (await self._db.execute(stmt)).scalar_one_or_none()
        due_at: datetime | None = row.due_at

        if existing:
            existing.role = row.role
            existing.due_at = due_at
            await self._db.flush()
            return False

        self._db.add(
            Enrollment(
                user_id=user_id,
                course_id=course_id,
                role=row.role,
                due_at=due_at,
            )
        )
        await self._db.flush()
        return True
