# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Abstract collaborator interfaces consumed by the domain services.

Implementations are supplied by the host application (typically backed by
the course and enrollment tables of the wider platform). Every method is
scoped to a tenant; a record owned by another tenant must be reported as
absent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from lms_core.core.config.settings import GradingSettings


@dataclass(frozen=True)
class CourseRef:
    """Minimal view of a course.

    Attributes:
        id: Course identifier.
        professor_id: Professor teaching the course.
    """

    id: str
    professor_id: str


@dataclass(frozen=True)
class GradeScale:
    """Inclusive bounds for grade values.

    Either bound may be None, in which case it is not enforced.
    """

    min: int | None = None
    max: int | None = None

    def contains(self, value: int) -> bool:
        """Check whether a value lies within the scale."""
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class EnrollmentDirectory(ABC):
    """Source of course enrollments."""

    @abstractmethod
    async def active_enrollments(self, tenant_id: str, course_id: str) -> list[str]:
        """Return student IDs actively enrolled in a course.

        Cancelled and deleted enrollments must be excluded.

        Args:
            tenant_id: Tenant scope.
            course_id: Course identifier.

        Returns:
            Student identifiers, without duplicates.
        """
        pass

    async def is_enrolled(self, tenant_id: str, course_id: str, student_id: str) -> bool:
        """Check whether a student is actively enrolled in a course.

        Args:
            tenant_id: Tenant scope.
            course_id: Course identifier.
            student_id: Student identifier.

        Returns:
            True if an active enrollment exists.
        """
        return student_id in await self.active_enrollments(tenant_id, course_id)


class CourseDirectory(ABC):
    """Source of course records."""

    @abstractmethod
    async def get_course(self, tenant_id: str, course_id: str) -> CourseRef | None:
        """Look up a course.

        Args:
            tenant_id: Tenant scope.
            course_id: Course identifier.

        Returns:
            The course, or None if it does not exist in the tenant.
        """
        pass


class TenantGradeScale(ABC):
    """Source of per-tenant grade scales."""

    @abstractmethod
    async def get(self, tenant_id: str) -> GradeScale | None:
        """Return the tenant's grade scale, or None if it has none."""
        pass


class SettingsGradeScale(TenantGradeScale):
    """Grade scale taken from GradingSettings, identical for every tenant."""

    def __init__(self, settings: GradingSettings) -> None:
        self._scale = GradeScale(min=settings.scale_min, max=settings.scale_max)

    async def get(self, tenant_id: str) -> GradeScale | None:
        return self._scale
