# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Activity log query and response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from lms_core.models.common import Pagination, SeverityEnum


class ActivityLogFilter(BaseModel):
    """Filters for listing activity logs."""

    action: str | None = None
    entity_type: str | None = None
    user_id: str | None = None
    severity: SeverityEnum | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int | None = Field(default=None, ge=1)


class ActivityLogResponse(BaseModel):
    """One activity log entry."""

    id: str
    tenant_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    changes: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    severity: SeverityEnum
    created_at: datetime


class ActivityLogPage(BaseModel):
    """A page of activity logs, newest first."""

    logs: list[ActivityLogResponse]
    pagination: Pagination


class StatBucket(BaseModel):
    """Count of entries sharing one key."""

    key: str
    count: int


class ActivityStats(BaseModel):
    """Aggregated activity counts within a trailing window."""

    action_stats: list[StatBucket]
    severity_stats: list[StatBucket]
    entity_type_stats: list[StatBucket]
    period_days: int
    start_date: datetime
    end_date: datetime
