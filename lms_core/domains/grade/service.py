# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade ledger service.

This module provides the GradeLedgerService class for:
- Upserting the attempt-1 grade produced by exam grading
- Direct grade creation, update and deletion
- Grade lookup and listing

Every change of a grade's value appends one history entry
{old_value, new_value, changed_by, changed_at}; entries are never edited.
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_core.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
)
from lms_core.domains.audit.writer import AuditedWriter
from lms_core.domains.directory.base import CourseDirectory, TenantGradeScale
from lms_core.infrastructure.database.models.grade import Grade
from lms_core.models.common import ActorContext, DeleteConfirmation, RoleEnum
from lms_core.models.grade import (
    GradeCreateRequest,
    GradeHistoryEntry,
    GradeResponse,
    GradeUpdateRequest,
)
from lms_core.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

FIRST_ATTEMPT = 1


class GradeServiceError(Exception):
    """Base exception for grade service errors."""

    pass


class GradeNotFoundError(GradeServiceError, NotFoundError):
    """Raised when grade is not found."""

    pass


class GradeCourseNotFoundError(GradeServiceError, NotFoundError):
    """Raised when the graded course is not found."""

    pass


class GradeAccessDeniedError(GradeServiceError, ForbiddenError):
    """Raised when the caller may not manage the grade."""

    pass


class GradeOutOfScaleError(GradeServiceError, InvalidArgumentError):
    """Raised when a value lies outside the tenant's grade scale."""

    pass


class GradeAlreadyExistsError(GradeServiceError, ConflictError):
    """Raised when a grade for the same student, course and attempt exists."""

    pass


class GradeLedgerService:
    """Service for the per-student, per-course, per-attempt grade ledger.

    Attributes:
        db: Async database session.
        writer: Audited writer used for every mutation.
        grade_scale: Source of tenant grade scales.
        courses: Course directory, used by direct grade creation.
    """

    def __init__(
        self,
        db: AsyncSession,
        writer: AuditedWriter,
        grade_scale: TenantGradeScale,
        courses: CourseDirectory,
    ) -> None:
        """Initialize grade ledger service.

        Args:
            db: Async database session.
            writer: Audited writer sharing the same session.
            grade_scale: Source of tenant grade scales.
            courses: Course directory.
        """
        self.db = db
        self.writer = writer
        self.grade_scale = grade_scale
        self.courses = courses

    async def upsert_attempt_one(
        self,
        tenant_id: str,
        student_id: str,
        course_id: str,
        professor_id: str,
        new_value: int,
        comment: str | None,
        changed_by: str,
    ) -> GradeResponse:
        """Create or update a student's first-attempt grade for a course.

        Args:
            tenant_id: Tenant scope.
            student_id: Graded student.
            course_id: Graded course.
            professor_id: Professor recorded on a newly created grade.
            new_value: Grade value.
            comment: Optional comment, overwrites the stored one.
            changed_by: User making the change.

        Returns:
            The stored grade.

        Raises:
            GradeOutOfScaleError: If new_value is outside the grade scale.
        """
        await self._check_scale(tenant_id, new_value)

        existing = await self._find_grade(tenant_id, student_id, course_id, FIRST_ATTEMPT)
        if existing is None:
            grade = Grade(
                tenant_id=tenant_id,
                student_id=student_id,
                course_id=course_id,
                professor_id=professor_id,
                value=new_value,
                attempt=FIRST_ATTEMPT,
                comment=comment,
                date=utc_now(),
                history=[],
                created_by=changed_by,
            )
            try:
                await self.writer.create(grade)
            except ConflictError as e:
                raise GradeAlreadyExistsError(
                    "Grade for this student, course and attempt already exists",
                    {"student_id": student_id, "course_id": course_id},
                ) from e

            logger.info(
                "Created attempt-1 grade: student=%s, course=%s, value=%s, by=%s",
                student_id,
                course_id,
                new_value,
                changed_by,
            )
            return self._to_response(grade)

        changes: dict[str, Any] = {
            "value": new_value,
            "comment": comment,
            "updated_by": changed_by,
        }
        changes.update(self._history_change(existing, new_value, changed_by))
        await self.writer.update(existing, changes)

        logger.info(
            "Updated attempt-1 grade: student=%s, course=%s, value=%s, by=%s",
            student_id,
            course_id,
            new_value,
            changed_by,
        )
        return self._to_response(existing)

    async def create_grade(
        self,
        actor: ActorContext,
        request: GradeCreateRequest,
    ) -> GradeResponse:
        """Record a grade directly, outside the exam flow.

        The acting user becomes the grade's professor.

        Raises:
            GradeAccessDeniedError: If the caller is a student.
            GradeCourseNotFoundError: If the course is not in the tenant.
            GradeOutOfScaleError: If the value is outside the grade scale.
            GradeAlreadyExistsError: If the attempt is already graded.
        """
        self._require_staff(actor)

        course = await self.courses.get_course(actor.tenant_id, request.course_id)
        if course is None:
            raise GradeCourseNotFoundError(
                f"Course {request.course_id} not found",
                {"course_id": request.course_id},
            )

        await self._check_scale(actor.tenant_id, request.value)

        existing = await self._find_grade(
            actor.tenant_id, request.student_id, request.course_id, request.attempt
        )
        if existing is not None:
            raise GradeAlreadyExistsError(
                "Grade for this student, course and attempt already exists",
                {"grade_id": existing.id, "attempt": request.attempt},
            )

        grade = Grade(
            tenant_id=actor.tenant_id,
            student_id=request.student_id,
            course_id=request.course_id,
            professor_id=actor.user_id,
            value=request.value,
            attempt=request.attempt,
            comment=request.comment,
            date=request.date or utc_now(),
            history=[],
            created_by=actor.user_id,
        )
        try:
            await self.writer.create(grade)
        except ConflictError as e:
            raise GradeAlreadyExistsError(
                "Grade for this student, course and attempt already exists",
                {"attempt": request.attempt},
            ) from e

        logger.info(
            "Created grade: id=%s, student=%s, course=%s, attempt=%s, by=%s",
            grade.id,
            grade.student_id,
            grade.course_id,
            grade.attempt,
            actor.user_id,
        )
        return self._to_response(grade)

    async def update_grade(
        self,
        actor: ActorContext,
        grade_id: str,
        request: GradeUpdateRequest,
    ) -> GradeResponse:
        """Update a grade's value, comment or date.

        Raises:
            GradeNotFoundError: If the grade does not exist.
            GradeAccessDeniedError: If the caller is neither its professor nor an admin.
            GradeOutOfScaleError: If the new value is outside the grade scale.
        """
        grade = await self._get_grade(actor.tenant_id, grade_id)
        self._require_owner(actor, grade)

        update_data = request.model_dump(exclude_unset=True)
        changes: dict[str, Any] = {"updated_by": actor.user_id}

        if update_data.get("value") is not None:
            new_value = update_data["value"]
            await self._check_scale(actor.tenant_id, new_value)
            changes["value"] = new_value
            changes.update(self._history_change(grade, new_value, actor.user_id))
        if "comment" in update_data:
            changes["comment"] = update_data["comment"]
        if update_data.get("date") is not None:
            changes["date"] = update_data["date"]

        await self.writer.update(grade, changes)

        logger.info("Updated grade: id=%s, by=%s", grade_id, actor.user_id)
        return self._to_response(grade)

    async def delete_grade(self, actor: ActorContext, grade_id: str) -> DeleteConfirmation:
        """Delete a grade.

        Raises:
            GradeNotFoundError: If the grade does not exist.
            GradeAccessDeniedError: If the caller is neither its professor nor an admin.
        """
        grade = await self._get_grade(actor.tenant_id, grade_id)
        self._require_owner(actor, grade)

        await self.writer.delete(grade, actor_id=actor.user_id)

        logger.info("Deleted grade: id=%s, by=%s", grade_id, actor.user_id)
        return DeleteConfirmation(id=grade_id, message="Grade deleted successfully")

    async def get_grade(self, actor: ActorContext, grade_id: str) -> GradeResponse:
        """Get a grade by ID.

        Raises:
            GradeNotFoundError: If the grade does not exist.
        """
        grade = await self._get_grade(actor.tenant_id, grade_id)
        return self._to_response(grade)

    async def list_grades(
        self,
        actor: ActorContext,
        student_id: str | None = None,
        course_id: str | None = None,
        professor_id: str | None = None,
        attempt: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[GradeResponse], int]:
        """List grades of the tenant, most recent date first.

        Returns:
            Tuple of (grades, total count).
        """
        stmt = select(Grade).where(Grade.tenant_id == actor.tenant_id)

        if student_id:
            stmt = stmt.where(Grade.student_id == student_id)
        if course_id:
            stmt = stmt.where(Grade.course_id == course_id)
        if professor_id:
            stmt = stmt.where(Grade.professor_id == professor_id)
        if attempt is not None:
            stmt = stmt.where(Grade.attempt == attempt)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(Grade.date.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)

        return [self._to_response(g) for g in result.scalars().all()], total

    async def _check_scale(self, tenant_id: str, value: int) -> None:
        scale = await self.grade_scale.get(tenant_id)
        if scale is not None and not scale.contains(value):
            raise GradeOutOfScaleError(
                f"Grade {value} is outside the grade scale {scale.min}-{scale.max}",
                {"value": value, "min": scale.min, "max": scale.max},
            )

    def _history_change(self, grade: Grade, new_value: int, changed_by: str) -> dict[str, Any]:
        """Build the history update for a value change, or nothing if unchanged."""
        if grade.value == new_value:
            return {}
        entry = {
            "old_value": grade.value,
            "new_value": new_value,
            "changed_by": changed_by,
            "changed_at": utc_now().isoformat(),
        }
        return {"history": [*(grade.history or []), entry]}

    async def _find_grade(
        self,
        tenant_id: str,
        student_id: str,
        course_id: str,
        attempt: int,
    ) -> Grade | None:
        result = await self.db.execute(
            select(Grade).where(
                Grade.tenant_id == tenant_id,
                Grade.student_id == student_id,
                Grade.course_id == course_id,
                Grade.attempt == attempt,
            )
        )
        return result.scalar_one_or_none()

    async def _get_grade(self, tenant_id: str, grade_id: str) -> Grade:
        result = await self.db.execute(
            select(Grade).where(Grade.id == grade_id, Grade.tenant_id == tenant_id)
        )
        grade = result.scalar_one_or_none()
        if not grade:
            raise GradeNotFoundError(f"Grade {grade_id} not found")
        return grade

    def _require_staff(self, actor: ActorContext) -> None:
        if actor.role not in (RoleEnum.ADMIN, RoleEnum.PROFESSOR):
            raise GradeAccessDeniedError(
                "Only professors and admins can manage grades",
                {"role": actor.role.value},
            )

    def _require_owner(self, actor: ActorContext, grade: Grade) -> None:
        if actor.is_admin:
            return
        if actor.is_professor and grade.professor_id == actor.user_id:
            return
        raise GradeAccessDeniedError(
            "You can only manage grades you created",
            {"grade_id": grade.id},
        )

    def _to_response(self, grade: Grade) -> GradeResponse:
        return GradeResponse(
            id=grade.id,
            tenant_id=grade.tenant_id,
            student_id=grade.student_id,
            course_id=grade.course_id,
            professor_id=grade.professor_id,
            value=grade.value,
            attempt=grade.attempt,
            comment=grade.comment,
            date=ensure_utc(grade.date),
            history=[GradeHistoryEntry.model_validate(h) for h in grade.history or []],
            created_at=ensure_utc(grade.created_at),
            updated_at=ensure_utc(grade.updated_at),
        )
