# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the grading core.

Importing this package registers every table on Base.metadata.
"""

from lms_core.infrastructure.database.models.activity_log import ActivityLog
from lms_core.infrastructure.database.models.base import (
    ActorStampMixin,
    Base,
    JSONType,
    TenantScopedMixin,
    TimestampMixin,
    generate_uuid,
)
from lms_core.infrastructure.database.models.exam import Exam, ExamSubscription
from lms_core.infrastructure.database.models.grade import Grade

__all__ = [
    "Base",
    "JSONType",
    "TenantScopedMixin",
    "ActorStampMixin",
    "TimestampMixin",
    "generate_uuid",
    "Exam",
    "ExamSubscription",
    "Grade",
    "ActivityLog",
]
