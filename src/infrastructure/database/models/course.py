# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course catalog models.

Courses and modules carry a caller-supplied ``external_id`` so repeated
imports update the same records instead of creating duplicates.
"""

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Course(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A course in the catalog."""

    __tablename__ = "courses"

    external_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(50), default="beginner")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    modules: Mapped[list["Module"]] = relationship(
        back_populates="course",
        order_by="Module.order_index",
        cascade="all, delete-orphan",
    )


class Module(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A content module belonging to a course."""

    __tablename__ = "modules"
    __table_args__ = (
        CheckConstraint(
            "module_type IN ('video', 'pdf', 'scorm', 'link', 'survey')",
            name="valid_module_type",
        ),
    )

    external_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    course_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(500))
    module_type: Mapped[str] = mapped_column(String(20), default="pdf")
    content_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    course: Mapped[Course] = relationship(back_populates="modules")
