# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Directory collaborators.

Interfaces to the parts of the platform that live outside the grading
core:
- EnrollmentDirectory: Active enrollments of a course
- CourseDirectory: Course existence and owning professor
- TenantGradeScale: Per-tenant grade bounds
"""

from lms_core.domains.directory.base import (
    CourseDirectory,
    CourseRef,
    EnrollmentDirectory,
    GradeScale,
    SettingsGradeScale,
    TenantGradeScale,
)

__all__ = [
    "CourseDirectory",
    "CourseRef",
    "EnrollmentDirectory",
    "GradeScale",
    "SettingsGradeScale",
    "TenantGradeScale",
]
