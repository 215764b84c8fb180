# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade ledger model."""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lms_core.infrastructure.database.models.base import (
    ActorStampMixin,
    Base,
    JSONType,
    TenantScopedMixin,
    TimestampMixin,
    generate_uuid,
)
from lms_core.utils.datetime import utc_now


class Grade(Base, TenantScopedMixin, ActorStampMixin, TimestampMixin):
    """A student's grade for one attempt at a course.

    history holds {old_value, new_value, changed_by, changed_at} entries,
    oldest first. Entries are only ever appended; the list is replaced as
    a whole so the JSON column is flagged dirty.
    """

    __tablename__ = "grades"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    professor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "student_id",
            "course_id",
            "attempt",
            name="uq_grades_tenant_student_course_attempt",
        ),
    )
