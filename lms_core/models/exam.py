# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exam and exam subscription request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lms_core.models.common import ExamTypeEnum, SubscriptionStatusEnum
from lms_core.models.grade import GradeResponse


class ExamCreateRequest(BaseModel):
    """Input for creating an exam."""

    course_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    date: datetime
    location: str | None = Field(default=None, max_length=255)
    max_points: float = Field(..., ge=0)
    passing_points: float = Field(..., ge=0)
    type: ExamTypeEnum = ExamTypeEnum.FINISHING
    subscription_deadline: datetime | None = None
    is_active: bool = True


class ExamUpdateRequest(BaseModel):
    """Partial exam update.

    Tenant, course and professor are not updatable and are therefore not
    part of the payload.
    """

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    date: datetime | None = None
    location: str | None = Field(default=None, max_length=255)
    max_points: float | None = Field(default=None, ge=0)
    passing_points: float | None = Field(default=None, ge=0)
    type: ExamTypeEnum | None = None
    subscription_deadline: datetime | None = None
    is_active: bool | None = None


class ExamResponse(BaseModel):
    """Exam as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    course_id: str
    professor_id: str
    title: str
    description: str | None = None
    date: datetime
    location: str | None = None
    max_points: float
    passing_points: float
    type: ExamTypeEnum
    subscription_deadline: datetime
    is_active: bool
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


class GradeExamRequest(BaseModel):
    """Input for grading an exam subscription."""

    points: float
    grade: int | None = None
    comment: str | None = None


class SubscriptionResponse(BaseModel):
    """Exam subscription as returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    exam_id: str
    student_id: str
    status: SubscriptionStatusEnum
    points: float | None = None
    grade: int | None = None
    graded_by: str | None = None
    graded_at: datetime | None = None
    comment: str | None = None
    created_at: datetime
    updated_at: datetime


class GradeExamResult(BaseModel):
    """Outcome of grading: the updated subscription and the ledger record."""

    subscription: SubscriptionResponse
    grade: GradeResponse
