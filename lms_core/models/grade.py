# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grade ledger request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GradeHistoryEntry(BaseModel):
    """One recorded change of a grade value."""

    old_value: int
    new_value: int
    changed_by: str
    changed_at: datetime


class GradeCreateRequest(BaseModel):
    """Input for recording a grade directly."""

    student_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    value: int
    attempt: int = Field(default=1, ge=1)
    comment: str | None = None
    date: datetime | None = None


class GradeUpdateRequest(BaseModel):
    """Partial grade update."""

    model_config = ConfigDict(extra="ignore")

    value: int | None = None
    comment: str | None = None
    date: datetime | None = None


class GradeResponse(BaseModel):
    """Grade as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    student_id: str
    course_id: str
    professor_id: str
    value: int
    attempt: int
    comment: str | None = None
    date: datetime
    history: list[GradeHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
