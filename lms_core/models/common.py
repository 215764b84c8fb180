# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared enums, caller context and pagination models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RoleEnum(str, Enum):
    """Roles a caller can act in."""

    ADMIN = "admin"
    PROFESSOR = "professor"
    STUDENT = "student"


class ExamTypeEnum(str, Enum):
    """Exam kinds."""

    PRELIMINARY = "preliminary"
    FINISHING = "finishing"


class SubscriptionStatusEnum(str, Enum):
    """Exam subscription lifecycle states."""

    SUBSCRIBED = "subscribed"
    GRADED = "graded"
    PASSED = "passed"
    FAILED = "failed"


class SeverityEnum(str, Enum):
    """Activity log severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActorContext(BaseModel):
    """Identity of the caller, resolved and authorized upstream.

    Attributes:
        user_id: Acting user.
        role: Role the user acts in.
        tenant_id: Tenant the call is scoped to.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    role: RoleEnum
    tenant_id: str = Field(..., min_length=1)

    @property
    def is_admin(self) -> bool:
        """Whether the caller acts as an administrator."""
        return self.role == RoleEnum.ADMIN

    @property
    def is_professor(self) -> bool:
        """Whether the caller acts as a professor."""
        return self.role == RoleEnum.PROFESSOR

    @property
    def is_student(self) -> bool:
        """Whether the caller acts as a student."""
        return self.role == RoleEnum.STUDENT


class DeleteConfirmation(BaseModel):
    """Result of a delete operation."""

    id: str
    message: str


class Pagination(BaseModel):
    """Pagination block of a paged listing."""

    page: int
    limit: int
    total: int
    total_pages: int
