# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade ledger domain package.

This package provides the grade ledger:
- Attempt-1 upserts driven by exam grading
- Direct grade management with append-only history
"""

from lms_core.domains.grade.service import (
    GradeAccessDeniedError,
    GradeAlreadyExistsError,
    GradeCourseNotFoundError,
    GradeLedgerService,
    GradeNotFoundError,
    GradeOutOfScaleError,
    GradeServiceError,
)

__all__ = [
    "GradeLedgerService",
    "GradeServiceError",
    "GradeNotFoundError",
    "GradeCourseNotFoundError",
    "GradeAccessDeniedError",
    "GradeOutOfScaleError",
    "GradeAlreadyExistsError",
]
