# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit sinks.

A sink persists finished activity log entries. The recorder hands every
entry to exactly one sink and absorbs whatever the sink raises, so sinks
do not need their own error recovery.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lms_core.infrastructure.database.models.activity_log import ActivityLog
from lms_core.utils.datetime import utc_now


@dataclass
class ActivityLogEntry:
    """An activity log entry ready to be persisted.

    Attributes:
        tenant_id: Tenant the change happened in.
        user_id: User the change is attributed to.
        action: Dotted action name, e.g. "exam.updated".
        entity_type: Entity type name, e.g. "Exam".
        entity_id: Identifier of the changed record.
        changes: Field-level {field: {old, new}} map, if any.
        metadata: Additional context, if any.
        severity: One of low, medium, high, critical.
        created_at: When the entry was produced.
    """

    tenant_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    changes: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    severity: str = "low"
    created_at: datetime = field(default_factory=utc_now)


class AuditSink(ABC):
    """Destination for activity log entries."""

    @abstractmethod
    async def write(self, entry: ActivityLogEntry) -> None:
        """Persist one entry.

        Args:
            entry: Entry to persist.
        """
        pass


class DatabaseAuditSink(AuditSink):
    """Writes entries to the activity_logs table.

    Each entry is committed in its own session, independent of the session
    that performed the audited write.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the sink.

        Args:
            sessionmaker: Factory for the sessions entries are written in.
        """
        self._sessionmaker = sessionmaker

    async def write(self, entry: ActivityLogEntry) -> None:
        async with self._sessionmaker() as session:
            session.add(
                ActivityLog(
                    tenant_id=entry.tenant_id,
                    user_id=entry.user_id,
                    action=entry.action,
                    entity_type=entry.entity_type,
                    entity_id=entry.entity_id,
                    changes=entry.changes,
                    metadata_=entry.metadata,
                    severity=entry.severity,
                    created_at=entry.created_at,
                )
            )
            await session.commit()
