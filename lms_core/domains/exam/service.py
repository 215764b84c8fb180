# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exam service for managing the exam lifecycle.

This module provides the ExamService class for:
- Exam creation, update and deletion
- Automatic subscription of enrolled students to preliminary exams
- Exam lookup and listing
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_core.core.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from lms_core.domains.audit.writer import AuditedWriter
from lms_core.domains.directory.base import CourseDirectory, EnrollmentDirectory
from lms_core.infrastructure.database.models.exam import Exam, ExamSubscription
from lms_core.models.common import ActorContext, DeleteConfirmation, ExamTypeEnum, RoleEnum
from lms_core.models.exam import ExamCreateRequest, ExamResponse, ExamUpdateRequest
from lms_core.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

# Columns that cannot be cleared by an update.
REQUIRED_EXAM_FIELDS = frozenset(
    {
        "title",
        "date",
        "max_points",
        "passing_points",
        "type",
        "subscription_deadline",
        "is_active",
    }
)


class ExamServiceError(Exception):
    """Base exception for exam service errors."""

    pass


class ExamNotFoundError(ExamServiceError, NotFoundError):
    """Raised when exam is not found."""

    pass


class ExamCourseNotFoundError(ExamServiceError, NotFoundError):
    """Raised when the exam's course is not found."""

    pass


class ExamAccessDeniedError(ExamServiceError, ForbiddenError):
    """Raised when the caller may not manage the exam."""

    pass


class InvalidExamError(ExamServiceError, InvalidArgumentError):
    """Raised when exam data violates an exam invariant."""

    pass


class ExamHasSubscriptionsError(ExamServiceError, InvalidStateError):
    """Raised when deleting an exam that still has subscriptions."""

    pass


class ExamService:
    """Service for managing exams.

    Creating a preliminary exam, or turning a finishing exam into a
    preliminary one, subscribes every actively enrolled student of the
    course. The exam write and the subscription writes are separate
    commits.

    Attributes:
        db: Async database session.
        writer: Audited writer used for every mutation.
        courses: Course directory.
        enrollments: Enrollment directory.
    """

    def __init__(
        self,
        db: AsyncSession,
        writer: AuditedWriter,
        courses: CourseDirectory,
        enrollments: EnrollmentDirectory,
    ) -> None:
        """Initialize exam service.

        Args:
            db: Async database session.
            writer: Audited writer sharing the same session.
            courses: Course directory.
            enrollments: Enrollment directory.
        """
        self.db = db
        self.writer = writer
        self.courses = courses
        self.enrollments = enrollments

    async def create_exam(
        self,
        actor: ActorContext,
        request: ExamCreateRequest,
    ) -> ExamResponse:
        """Create an exam.

        Professors may only create exams for courses they teach. When an
        admin creates the exam, the course's professor owns it.

        Args:
            actor: Calling professor or admin.
            request: Exam data.

        Returns:
            The created exam, after any automatic subscriptions exist.

        Raises:
            ExamAccessDeniedError: If the caller may not create exams for the course.
            ExamCourseNotFoundError: If the course is not in the tenant.
            InvalidExamError: If the exam data is inconsistent.
        """
        if actor.role not in (RoleEnum.PROFESSOR, RoleEnum.ADMIN):
            raise ExamAccessDeniedError(
                "Only professors and admins can create exams",
                {"role": actor.role.value},
            )

        course = await self.courses.get_course(actor.tenant_id, request.course_id)
        if course is None:
            raise ExamCourseNotFoundError(
                f"Course {request.course_id} not found",
                {"course_id": request.course_id},
            )

        if actor.is_professor and course.professor_id != actor.user_id:
            raise ExamAccessDeniedError(
                "You can only create exams for courses you teach",
                {"course_id": course.id},
            )

        deadline = request.subscription_deadline
        if deadline is None:
            if request.type == ExamTypeEnum.FINISHING:
                raise InvalidExamError("Finishing exams require a subscription deadline")
            deadline = request.date

        self._validate_exam(
            exam_type=request.type.value,
            date=request.date,
            max_points=request.max_points,
            passing_points=request.passing_points,
            subscription_deadline=deadline,
        )

        exam = Exam(
            tenant_id=actor.tenant_id,
            course_id=course.id,
            professor_id=actor.user_id if actor.is_professor else course.professor_id,
            title=request.title,
            description=request.description,
            date=request.date,
            location=request.location,
            max_points=request.max_points,
            passing_points=request.passing_points,
            type=request.type.value,
            subscription_deadline=deadline,
            is_active=request.is_active,
            created_by=actor.user_id,
        )
        await self.writer.create(exam)

        logger.info(
            "Created exam: id=%s, course=%s, type=%s, by=%s",
            exam.id,
            exam.course_id,
            exam.type,
            actor.user_id,
        )

        if exam.is_preliminary:
            await self._fan_out(exam, actor.user_id)

        return self._to_response(exam)

    async def update_exam(
        self,
        actor: ActorContext,
        exam_id: str,
        request: ExamUpdateRequest,
    ) -> ExamResponse:
        """Update an exam.

        Invariants are re-checked on the merged state. Turning a finishing
        exam into a preliminary one subscribes enrolled students that have
        no subscription yet; the reverse never removes subscriptions.

        Raises:
            ExamNotFoundError: If the exam does not exist.
            ExamAccessDeniedError: If the caller is neither its professor nor an admin.
            InvalidExamError: If the merged exam data is inconsistent.
        """
        exam = await self._get_exam(actor.tenant_id, exam_id)
        self._require_owner(actor, exam)

        update_data: dict[str, Any] = {}
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is None and field in REQUIRED_EXAM_FIELDS:
                continue
            update_data[field] = value.value if isinstance(value, ExamTypeEnum) else value

        merged = {
            field: update_data.get(field, getattr(exam, field))
            for field in ("type", "date", "max_points", "passing_points", "subscription_deadline")
        }
        self._validate_exam(
            exam_type=merged["type"],
            date=merged["date"],
            max_points=merged["max_points"],
            passing_points=merged["passing_points"],
            subscription_deadline=merged["subscription_deadline"],
        )

        was_preliminary = exam.is_preliminary
        update_data["updated_by"] = actor.user_id
        await self.writer.update(exam, update_data)

        logger.info("Updated exam: id=%s, by=%s", exam_id, actor.user_id)

        if exam.is_preliminary and not was_preliminary:
            await self._fan_out(exam, actor.user_id)

        return self._to_response(exam)

    async def delete_exam(self, actor: ActorContext, exam_id: str) -> DeleteConfirmation:
        """Delete an exam that has no subscriptions.

        Subscriptions belong to students and are never removed on their
        behalf, so an exam with any subscription cannot be deleted.

        Raises:
            ExamNotFoundError: If the exam does not exist.
            ExamAccessDeniedError: If the caller is neither its professor nor an admin.
            ExamHasSubscriptionsError: If the exam has any subscription.
        """
        exam = await self._get_exam(actor.tenant_id, exam_id)
        self._require_owner(actor, exam)

        subscription_count = (
            await self.db.execute(
                select(func.count(ExamSubscription.id)).where(
                    ExamSubscription.tenant_id == actor.tenant_id,
                    ExamSubscription.exam_id == exam_id,
                )
            )
        ).scalar() or 0
        if subscription_count:
            raise ExamHasSubscriptionsError(
                "Cannot delete an exam that has subscriptions",
                {"exam_id": exam_id, "subscriptions": subscription_count},
            )

        await self.writer.delete(exam, actor_id=actor.user_id)

        logger.info("Deleted exam: id=%s, by=%s", exam_id, actor.user_id)
        return DeleteConfirmation(id=exam_id, message="Exam deleted successfully")

    async def get_exam(self, actor: ActorContext, exam_id: str) -> ExamResponse:
        """Get an exam by ID.

        Raises:
            ExamNotFoundError: If the exam does not exist.
        """
        exam = await self._get_exam(actor.tenant_id, exam_id)
        return self._to_response(exam)

    async def list_exams(
        self,
        actor: ActorContext,
        course_id: str | None = None,
        professor_id: str | None = None,
        is_active: bool | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[ExamResponse], int]:
        """List exams of the tenant, earliest first.

        Returns:
            Tuple of (exams, total count).
        """
        stmt = select(Exam).where(Exam.tenant_id == actor.tenant_id)

        if course_id:
            stmt = stmt.where(Exam.course_id == course_id)
        if professor_id:
            stmt = stmt.where(Exam.professor_id == professor_id)
        if is_active is not None:
            stmt = stmt.where(Exam.is_active == is_active)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(Exam.date.asc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)

        return [self._to_response(e) for e in result.scalars().all()], total

    async def _fan_out(self, exam: Exam, actor_id: str) -> int:
        """Subscribe actively enrolled students that have no subscription yet.

        Returns:
            Number of subscriptions created.
        """
        students = await self.enrollments.active_enrollments(exam.tenant_id, exam.course_id)

        result = await self.db.execute(
            select(ExamSubscription.student_id).where(
                ExamSubscription.tenant_id == exam.tenant_id,
                ExamSubscription.exam_id == exam.id,
            )
        )
        subscribed = set(result.scalars().all())

        new_students = [s for s in dict.fromkeys(students) if s not in subscribed]
        subscriptions = [
            ExamSubscription(
                tenant_id=exam.tenant_id,
                exam_id=exam.id,
                student_id=student_id,
                status="subscribed",
                created_by=actor_id,
            )
            for student_id in new_students
        ]
        await self.writer.create_many(subscriptions)

        logger.info(
            "Fanned out exam subscriptions: exam=%s, created=%s, skipped=%s",
            exam.id,
            len(subscriptions),
            len(students) - len(subscriptions),
        )
        return len(subscriptions)

    def _validate_exam(
        self,
        exam_type: str,
        date: datetime,
        max_points: float,
        passing_points: float,
        subscription_deadline: datetime,
    ) -> None:
        if max_points < 0 or passing_points < 0:
            raise InvalidExamError(
                "Exam points cannot be negative",
                {"max_points": max_points, "passing_points": passing_points},
            )
        if passing_points > max_points:
            raise InvalidExamError(
                "Passing points cannot exceed max points",
                {"max_points": max_points, "passing_points": passing_points},
            )
        if exam_type == ExamTypeEnum.FINISHING.value and ensure_utc(
            subscription_deadline
        ) > ensure_utc(date):
            raise InvalidExamError("Subscription deadline must not be after the exam date")

    async def _get_exam(self, tenant_id: str, exam_id: str) -> Exam:
        result = await self.db.execute(
            select(Exam).where(Exam.id == exam_id, Exam.tenant_id == tenant_id)
        )
        exam = result.scalar_one_or_none()
        if not exam:
            raise ExamNotFoundError(f"Exam {exam_id} not found")
        return exam

    def _require_owner(self, actor: ActorContext, exam: Exam) -> None:
        if actor.is_admin:
            return
        if actor.is_professor and exam.professor_id == actor.user_id:
            return
        raise ExamAccessDeniedError(
            "You can only manage exams you own",
            {"exam_id": exam.id},
        )

    def _to_response(self, exam: Exam) -> ExamResponse:
        return ExamResponse(
            id=exam.id,
            tenant_id=exam.tenant_id,
            course_id=exam.course_id,
            professor_id=exam.professor_id,
            title=exam.title,
            description=exam.description,
            date=ensure_utc(exam.date),
            location=exam.location,
            max_points=exam.max_points,
            passing_points=exam.passing_points,
            type=ExamTypeEnum(exam.type),
            subscription_deadline=ensure_utc(exam.subscription_deadline),
            is_active=exam.is_active,
            created_by=exam.created_by,
            updated_by=exam.updated_by,
            created_at=ensure_utc(exam.created_at),
            updated_at=ensure_utc(exam.updated_at),
        )
