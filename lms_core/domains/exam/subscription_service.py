# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exam subscription service.

This module provides the ExamSubscriptionService class for:
- Student subscription to finishing exams
- Grading subscriptions and recording the grade in the ledger
- Unsubscribing before the deadline
- Subscription lookup and listing

A subscription moves from "subscribed" to "passed" or "failed" exactly
once. Grading commits the subscription before the grade ledger is
updated; the two writes are not atomic.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_core.core.config.settings import GradingSettings, get_settings
from lms_core.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from lms_core.domains.audit.writer import AuditedWriter
from lms_core.domains.directory.base import CourseDirectory, EnrollmentDirectory
from lms_core.domains.exam.service import ExamNotFoundError
from lms_core.domains.grade.service import GradeLedgerService
from lms_core.infrastructure.database.models.exam import Exam, ExamSubscription
from lms_core.models.common import (
    ActorContext,
    DeleteConfirmation,
    RoleEnum,
    SubscriptionStatusEnum,
)
from lms_core.models.exam import GradeExamResult, SubscriptionResponse
from lms_core.utils.datetime import ensure_utc, is_expired, utc_now

logger = logging.getLogger(__name__)


class SubscriptionServiceError(Exception):
    """Base exception for exam subscription service errors."""

    pass


class SubscriptionNotFoundError(SubscriptionServiceError, NotFoundError):
    """Raised when subscription is not found."""

    pass


class SubscriptionCourseNotFoundError(SubscriptionServiceError, NotFoundError):
    """Raised when the course of a subscription's exam is not found."""

    pass


class SubscriptionAccessDeniedError(SubscriptionServiceError, ForbiddenError):
    """Raised when the caller may not act on the subscription."""

    pass


class NotEnrolledError(SubscriptionServiceError, ForbiddenError):
    """Raised when the student is not enrolled in the exam's course."""

    pass


class AlreadySubscribedError(SubscriptionServiceError, ConflictError):
    """Raised when the student is already subscribed to the exam."""

    pass


class SubscriptionClosedError(SubscriptionServiceError, InvalidStateError):
    """Raised when the exam does not accept subscription changes."""

    pass


class SubscriptionAlreadyGradedError(SubscriptionServiceError, InvalidStateError):
    """Raised when the subscription is no longer pending."""

    pass


class InvalidGradingError(SubscriptionServiceError, InvalidArgumentError):
    """Raised when points or grade are out of range."""

    pass


class ExamSubscriptionService:
    """Service for exam subscriptions and grading.

    Attributes:
        db: Async database session.
        writer: Audited writer used for every mutation.
        courses: Course directory.
        enrollments: Enrollment directory.
        ledger: Grade ledger receiving exam grades.
        grading: Grading settings.
    """

    def __init__(
        self,
        db: AsyncSession,
        writer: AuditedWriter,
        courses: CourseDirectory,
        enrollments: EnrollmentDirectory,
        ledger: GradeLedgerService,
        grading: GradingSettings | None = None,
    ) -> None:
        """Initialize exam subscription service.

        Args:
            db: Async database session.
            writer: Audited writer sharing the same session.
            courses: Course directory.
            enrollments: Enrollment directory.
            ledger: Grade ledger service.
            grading: Grading settings. Defaults to the global settings.
        """
        self.db = db
        self.writer = writer
        self.courses = courses
        self.enrollments = enrollments
        self.ledger = ledger
        self.grading = grading or get_settings().grading

    async def subscribe_to_exam(
        self,
        actor: ActorContext,
        exam_id: str,
    ) -> SubscriptionResponse:
        """Subscribe the calling student to a finishing exam.

        Args:
            actor: Calling student.
            exam_id: Exam to subscribe to.

        Returns:
            The new subscription.

        Raises:
            SubscriptionAccessDeniedError: If the caller is not a student.
            ExamNotFoundError: If the exam does not exist.
            SubscriptionClosedError: If the exam is preliminary or its deadline passed.
            NotEnrolledError: If the student is not enrolled in the course.
            AlreadySubscribedError: If the student is already subscribed.
        """
        if not actor.is_student:
            raise SubscriptionAccessDeniedError(
                "Only students can subscribe to exams",
                {"role": actor.role.value},
            )

        exam = await self._get_exam(actor.tenant_id, exam_id)

        if exam.is_preliminary:
            raise SubscriptionClosedError(
                "Students are subscribed to preliminary exams automatically",
                {"exam_id": exam_id},
            )

        if is_expired(exam.subscription_deadline):
            raise SubscriptionClosedError(
                "Subscription deadline has passed",
                {"exam_id": exam_id, "deadline": ensure_utc(exam.subscription_deadline).isoformat()},
            )

        enrolled = await self.enrollments.is_enrolled(
            actor.tenant_id, exam.course_id, actor.user_id
        )
        if not enrolled:
            raise NotEnrolledError(
                "You must be enrolled in the course to subscribe to this exam",
                {"course_id": exam.course_id},
            )

        existing = await self.db.execute(
            select(ExamSubscription.id).where(
                ExamSubscription.tenant_id == actor.tenant_id,
                ExamSubscription.exam_id == exam_id,
                ExamSubscription.student_id == actor.user_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise AlreadySubscribedError(
                "Already subscribed to this exam",
                {"exam_id": exam_id},
            )

        subscription = ExamSubscription(
            tenant_id=actor.tenant_id,
            exam_id=exam_id,
            student_id=actor.user_id,
            status=SubscriptionStatusEnum.SUBSCRIBED.value,
            created_by=actor.user_id,
        )
        try:
            await self.writer.create(subscription)
        except ConflictError as e:
            raise AlreadySubscribedError(
                "Already subscribed to this exam",
                {"exam_id": exam_id},
            ) from e

        await self.writer.recorder.log_activity(
            tenant_id=actor.tenant_id,
            user_id=actor.user_id,
            action="exam.subscribed",
            entity_type="Exam",
            entity_id=exam_id,
            metadata={"subscription_id": subscription.id},
        )

        logger.info(
            "Subscribed to exam: exam=%s, student=%s",
            exam_id,
            actor.user_id,
        )
        return self._to_response(subscription)

    async def grade_exam(
        self,
        actor: ActorContext,
        subscription_id: str,
        points: float,
        grade: int | None = None,
        comment: str | None = None,
    ) -> GradeExamResult:
        """Grade a pending subscription and record the grade in the ledger.

        A pass carries the given grade (default 6, allowed 6 to 10); a fail
        always carries grade 5 regardless of the given grade.

        Args:
            actor: Course professor or admin.
            subscription_id: Subscription to grade.
            points: Points scored, between 0 and the exam's max points.
            grade: Grade for a pass.
            comment: Optional comment.

        Returns:
            The graded subscription and the ledger grade.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
            SubscriptionCourseNotFoundError: If the exam's course is missing.
            SubscriptionAccessDeniedError: If the caller does not teach the course.
            SubscriptionAlreadyGradedError: If the subscription is not pending.
            InvalidGradingError: If points or grade are out of range.
            GradeOutOfScaleError: If the grade is outside the tenant grade scale.
        """
        subscription = await self._get_subscription(actor.tenant_id, subscription_id)
        exam = await self._get_exam(actor.tenant_id, subscription.exam_id)

        course = await self.courses.get_course(actor.tenant_id, exam.course_id)
        if course is None:
            raise SubscriptionCourseNotFoundError(
                f"Course {exam.course_id} not found",
                {"course_id": exam.course_id},
            )

        if not (actor.is_admin or (actor.is_professor and course.professor_id == actor.user_id)):
            raise SubscriptionAccessDeniedError(
                "Only the course professor or an admin can grade this exam",
                {"course_id": course.id},
            )

        if not subscription.is_pending:
            raise SubscriptionAlreadyGradedError(
                "Subscription has already been graded",
                {"subscription_id": subscription_id, "status": subscription.status},
            )

        if points < 0 or points > exam.max_points:
            raise InvalidGradingError(
                f"Points must be between 0 and {exam.max_points}",
                {"points": points, "max_points": exam.max_points},
            )

        passed = points >= exam.passing_points
        if passed:
            final_grade = self.grading.default_passing_grade if grade is None else grade
            if not self.grading.min_passing_grade <= final_grade <= self.grading.max_passing_grade:
                raise InvalidGradingError(
                    f"Passing grade must be between {self.grading.min_passing_grade} "
                    f"and {self.grading.max_passing_grade}",
                    {"grade": final_grade},
                )
        else:
            final_grade = self.grading.failing_grade

        status = SubscriptionStatusEnum.PASSED if passed else SubscriptionStatusEnum.FAILED
        await self.writer.update(
            subscription,
            {
                "status": status.value,
                "points": points,
                "grade": final_grade,
                "graded_by": actor.user_id,
                "graded_at": utc_now(),
                "comment": comment,
                "updated_by": actor.user_id,
            },
        )

        await self.writer.recorder.log_activity(
            tenant_id=actor.tenant_id,
            user_id=actor.user_id,
            action="exam.graded",
            entity_type="ExamSubscription",
            entity_id=subscription.id,
            metadata={
                "exam_id": exam.id,
                "student_id": subscription.student_id,
                "points": points,
                "grade": final_grade,
                "status": status.value,
            },
            severity="medium",
        )

        logger.info(
            "Graded exam subscription: id=%s, status=%s, grade=%s, by=%s",
            subscription_id,
            status.value,
            final_grade,
            actor.user_id,
        )

        ledger_grade = await self.ledger.upsert_attempt_one(
            tenant_id=actor.tenant_id,
            student_id=subscription.student_id,
            course_id=exam.course_id,
            professor_id=course.professor_id,
            new_value=final_grade,
            comment=comment,
            changed_by=actor.user_id,
        )

        return GradeExamResult(
            subscription=self._to_response(subscription),
            grade=ledger_grade,
        )

    async def unsubscribe_from_exam(
        self,
        actor: ActorContext,
        subscription_id: str,
    ) -> DeleteConfirmation:
        """Remove the calling student's pending subscription.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
            SubscriptionAccessDeniedError: If the caller does not own it.
            SubscriptionAlreadyGradedError: If it has been graded.
            SubscriptionClosedError: If the deadline has passed.
        """
        subscription = await self._get_subscription(actor.tenant_id, subscription_id)

        if not actor.is_student or subscription.student_id != actor.user_id:
            raise SubscriptionAccessDeniedError(
                "You can only unsubscribe from your own exams",
                {"subscription_id": subscription_id},
            )

        if not subscription.is_pending:
            raise SubscriptionAlreadyGradedError(
                "Cannot unsubscribe from a graded exam",
                {"subscription_id": subscription_id, "status": subscription.status},
            )

        exam = await self._get_exam(actor.tenant_id, subscription.exam_id)
        if is_expired(exam.subscription_deadline):
            raise SubscriptionClosedError(
                "Cannot unsubscribe after the subscription deadline",
                {"exam_id": exam.id},
            )

        await self.writer.delete(subscription, actor_id=actor.user_id)

        logger.info(
            "Unsubscribed from exam: exam=%s, student=%s",
            exam.id,
            actor.user_id,
        )
        return DeleteConfirmation(id=subscription_id, message="Unsubscribed successfully")

    async def get_subscription(
        self,
        actor: ActorContext,
        subscription_id: str,
    ) -> SubscriptionResponse:
        """Get a subscription by ID.

        Raises:
            SubscriptionNotFoundError: If the subscription does not exist.
            SubscriptionAccessDeniedError: If a student asks for another student's subscription.
        """
        subscription = await self._get_subscription(actor.tenant_id, subscription_id)
        if actor.is_student and subscription.student_id != actor.user_id:
            raise SubscriptionAccessDeniedError(
                "You can only view your own subscriptions",
                {"subscription_id": subscription_id},
            )
        return self._to_response(subscription)

    async def list_subscriptions(
        self,
        actor: ActorContext,
        exam_id: str | None = None,
        student_id: str | None = None,
        status: SubscriptionStatusEnum | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[SubscriptionResponse], int]:
        """List subscriptions of the tenant, newest first.

        Students only ever see their own subscriptions.

        Returns:
            Tuple of (subscriptions, total count).
        """
        stmt = select(ExamSubscription).where(ExamSubscription.tenant_id == actor.tenant_id)

        if actor.role == RoleEnum.STUDENT:
            student_id = actor.user_id
        if exam_id:
            stmt = stmt.where(ExamSubscription.exam_id == exam_id)
        if student_id:
            stmt = stmt.where(ExamSubscription.student_id == student_id)
        if status:
            stmt = stmt.where(ExamSubscription.status == status.value)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(ExamSubscription.created_at.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)

        return [self._to_response(s) for s in result.scalars().all()], total

    async def _get_exam(self, tenant_id: str, exam_id: str) -> Exam:
        result = await self.db.execute(
            select(Exam).where(Exam.id == exam_id, Exam.tenant_id == tenant_id)
        )
        exam = result.scalar_one_or_none()
        if not exam:
            raise ExamNotFoundError(f"Exam {exam_id} not found")
        return exam

    async def _get_subscription(self, tenant_id: str, subscription_id: str) -> ExamSubscription:
        result = await self.db.execute(
            select(ExamSubscription).where(
                ExamSubscription.id == subscription_id,
                ExamSubscription.tenant_id == tenant_id,
            )
        )
        subscription = result.scalar_one_or_none()
        if not subscription:
            raise SubscriptionNotFoundError(f"Subscription {subscription_id} not found")
        return subscription

    def _to_response(self, subscription: ExamSubscription) -> SubscriptionResponse:
        return SubscriptionResponse(
            id=subscription.id,
            tenant_id=subscription.tenant_id,
            exam_id=subscription.exam_id,
            student_id=subscription.student_id,
            status=SubscriptionStatusEnum(subscription.status),
            points=subscription.points,
            grade=subscription.grade,
            graded_by=subscription.graded_by,
            graded_at=ensure_utc(subscription.graded_at),
            comment=subscription.comment,
            created_at=ensure_utc(subscription.created_at),
            updated_at=ensure_utc(subscription.updated_at),
        )
