# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exam and exam subscription models."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from lms_core.infrastructure.database.models.base import (
    ActorStampMixin,
    Base,
    TenantScopedMixin,
    TimestampMixin,
    generate_uuid,
)


class Exam(Base, TenantScopedMixin, ActorStampMixin, TimestampMixin):
    """An exam scheduled for a course.

    Preliminary exams subscribe every enrolled student automatically;
    finishing exams take explicit subscriptions until the deadline.
    """

    __tablename__ = "exams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    professor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    max_points: Mapped[float] = mapped_column(Float, nullable=False)
    passing_points: Mapped[float] = mapped_column(Float, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="finishing")
    subscription_deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("max_points >= 0", name="ck_exams_max_points_non_negative"),
        CheckConstraint("passing_points >= 0", name="ck_exams_passing_points_non_negative"),
        CheckConstraint("passing_points <= max_points", name="ck_exams_passing_le_max"),
        CheckConstraint("type IN ('preliminary', 'finishing')", name="ck_exams_type"),
        Index("ix_exams_tenant_course", "tenant_id", "course_id"),
    )

    @property
    def is_preliminary(self) -> bool:
        """Whether subscriptions are created by fan-out."""
        return self.type == "preliminary"


class ExamSubscription(Base, TenantScopedMixin, ActorStampMixin, TimestampMixin):
    """A student's registration for an exam and its grading outcome."""

    __tablename__ = "exam_subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    exam_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("exams.id"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="subscribed")
    points: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade: Mapped[int | None] = mapped_column(Integer, nullable=True)
    graded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "exam_id",
            "student_id",
            name="uq_exam_subscriptions_tenant_exam_student",
        ),
        CheckConstraint(
            "status IN ('subscribed', 'graded', 'passed', 'failed')",
            name="ck_exam_subscriptions_status",
        ),
        CheckConstraint(
            "status = 'subscribed' OR points IS NOT NULL",
            name="ck_exam_subscriptions_graded_has_points",
        ),
    )

    @property
    def is_pending(self) -> bool:
        """Whether the subscription is still waiting for a grade."""
        return self.status == "subscribed"
