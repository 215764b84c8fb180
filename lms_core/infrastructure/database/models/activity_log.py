# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Activity log model.

Rows are written once by the audit sink and never updated. Entries older
than the configured retention horizon are removed by
ActivityLogService.purge_expired().
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from lms_core.infrastructure.database.models.base import (
    Base,
    JSONType,
    TenantScopedMixin,
    generate_uuid,
)
from lms_core.utils.datetime import utc_now


class ActivityLog(Base, TenantScopedMixin):
    """Immutable audit trail entry."""

    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    changes: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="low")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    __table_args__ = (
        Index("ix_activity_logs_tenant_created", "tenant_id", "created_at"),
        Index("ix_activity_logs_tenant_user_created", "tenant_id", "user_id", "created_at"),
        Index("ix_activity_logs_tenant_action_created", "tenant_id", "action", "created_at"),
        Index("ix_activity_logs_tenant_entity", "tenant_id", "entity_type", "entity_id"),
    )
