# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Activity log service.

This module provides the ActivityLogService class for:
- Paginated, filtered activity log listings
- Per-entity change history
- Activity statistics over a trailing window
- Retention purging of expired entries
"""

import logging
import math
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_core.core.config.settings import AuditSettings, get_settings
from lms_core.core.exceptions import ForbiddenError, InvalidArgumentError
from lms_core.infrastructure.database.models.activity_log import ActivityLog
from lms_core.models.activity_log import (
    ActivityLogFilter,
    ActivityLogPage,
    ActivityLogResponse,
    ActivityStats,
    StatBucket,
)
from lms_core.models.common import ActorContext, Pagination, RoleEnum, SeverityEnum
from lms_core.utils.datetime import days_ago, ensure_utc, utc_now

logger = logging.getLogger(__name__)


class ActivityLogServiceError(Exception):
    """Base exception for activity log service errors."""

    pass


class ActivityLogAccessDeniedError(ActivityLogServiceError, ForbiddenError):
    """Raised when the caller may not read activity logs."""

    pass


class InvalidActivityQueryError(ActivityLogServiceError, InvalidArgumentError):
    """Raised when a listing or statistics query is malformed."""

    pass


class ActivityLogService:
    """Read side of the activity log.

    Attributes:
        db: Async database session.
        settings: Activity log settings.
    """

    def __init__(self, db: AsyncSession, settings: AuditSettings | None = None) -> None:
        """Initialize activity log service.

        Args:
            db: Async database session.
            settings: Activity log settings. Defaults to the global settings.
        """
        self.db = db
        self.settings = settings or get_settings().audit

    async def list_logs(
        self,
        actor: ActorContext,
        filters: ActivityLogFilter | None = None,
    ) -> ActivityLogPage:
        """List activity logs of the caller's tenant, newest first.

        Args:
            actor: Calling admin.
            filters: Optional filters and page selection.

        Returns:
            One page of logs with pagination info.

        Raises:
            ActivityLogAccessDeniedError: If the caller is not an admin.
            InvalidActivityQueryError: If start_date is after end_date.
        """
        self._require_role(actor, RoleEnum.ADMIN)
        filters = filters or ActivityLogFilter()

        limit = min(filters.limit or self.settings.default_page_size, self.settings.max_page_size)
        offset = (filters.page - 1) * limit

        stmt = select(ActivityLog).where(ActivityLog.tenant_id == actor.tenant_id)

        if filters.action:
            stmt = stmt.where(ActivityLog.action == filters.action)
        if filters.entity_type:
            stmt = stmt.where(ActivityLog.entity_type == filters.entity_type)
        if filters.user_id:
            stmt = stmt.where(ActivityLog.user_id == filters.user_id)
        if filters.severity:
            stmt = stmt.where(ActivityLog.severity == filters.severity.value)

        start_date = ensure_utc(filters.start_date) if filters.start_date else None
        end_date = ensure_utc(filters.end_date) if filters.end_date else None
        if start_date and end_date and start_date > end_date:
            raise InvalidActivityQueryError(
                "start_date must not be after end_date",
                {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        if start_date:
            stmt = stmt.where(ActivityLog.created_at >= start_date)
        if end_date:
            stmt = stmt.where(ActivityLog.created_at <= end_date)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(ActivityLog.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        logs = result.scalars().all()

        return ActivityLogPage(
            logs=[self._to_response(log) for log in logs],
            pagination=Pagination(
                page=filters.page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if total else 0,
            ),
        )

    async def entity_activity(
        self,
        actor: ActorContext,
        entity_type: str,
        entity_id: str,
    ) -> list[ActivityLogResponse]:
        """Get the most recent activity of one entity, newest first.

        Raises:
            ActivityLogAccessDeniedError: If the caller is a student.
        """
        self._require_role(actor, RoleEnum.ADMIN, RoleEnum.PROFESSOR)

        stmt = (
            select(ActivityLog)
            .where(
                ActivityLog.tenant_id == actor.tenant_id,
                ActivityLog.entity_type == entity_type,
                ActivityLog.entity_id == entity_id,
            )
            .order_by(ActivityLog.created_at.desc())
            .limit(self.settings.entity_history_limit)
        )
        result = await self.db.execute(stmt)
        return [self._to_response(log) for log in result.scalars().all()]

    async def activity_stats(
        self,
        actor: ActorContext,
        days: int | None = None,
    ) -> ActivityStats:
        """Count activity by action, severity and entity type.

        Args:
            actor: Calling admin.
            days: Trailing window in days. Defaults to the configured window.

        Returns:
            Counts per key, largest first.

        Raises:
            ActivityLogAccessDeniedError: If the caller is not an admin.
            InvalidActivityQueryError: If days is not positive or exceeds the
                configured maximum window.
        """
        self._require_role(actor, RoleEnum.ADMIN)
        days = self.settings.stats_window_days if days is None else days
        if days < 1:
            raise InvalidActivityQueryError("days must be positive", {"days": days})
        if days > self.settings.max_stats_window_days:
            raise InvalidActivityQueryError(
                f"days must not exceed {self.settings.max_stats_window_days}",
                {"days": days, "max_days": self.settings.max_stats_window_days},
            )

        end_date = utc_now()
        start_date = days_ago(days)

        return ActivityStats(
            action_stats=await self._count_by(ActivityLog.action, actor.tenant_id, start_date),
            severity_stats=await self._count_by(ActivityLog.severity, actor.tenant_id, start_date),
            entity_type_stats=await self._count_by(
                ActivityLog.entity_type, actor.tenant_id, start_date
            ),
            period_days=days,
            start_date=start_date,
            end_date=end_date,
        )

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete entries older than the retention horizon, in all tenants.

        Args:
            now: Reference time. Defaults to the current time.

        Returns:
            Number of deleted entries.
        """
        reference = ensure_utc(now) if now else utc_now()
        cutoff = reference - timedelta(days=self.settings.retention_days)

        result = await self.db.execute(delete(ActivityLog).where(ActivityLog.created_at < cutoff))
        await self.db.commit()

        purged = result.rowcount or 0
        logger.info("Purged expired activity logs: count=%s, cutoff=%s", purged, cutoff.isoformat())
        return purged

    async def _count_by(self, column, tenant_id: str, since: datetime) -> list[StatBucket]:
        count = func.count(ActivityLog.id)
        stmt = (
            select(column, count)
            .where(ActivityLog.tenant_id == tenant_id, ActivityLog.created_at >= since)
            .group_by(column)
            .order_by(count.desc(), column)
        )
        result = await self.db.execute(stmt)
        return [StatBucket(key=key, count=total) for key, total in result.all()]

    def _require_role(self, actor: ActorContext, *roles: RoleEnum) -> None:
        if actor.role not in roles:
            raise ActivityLogAccessDeniedError(
                "Not allowed to read activity logs",
                {"role": actor.role.value},
            )

    def _to_response(self, log: ActivityLog) -> ActivityLogResponse:
        return ActivityLogResponse(
            id=log.id,
            tenant_id=log.tenant_id,
            user_id=log.user_id,
            action=log.action,
            entity_type=log.entity_type,
            entity_id=log.entity_id,
            changes=log.changes,
            metadata=log.metadata_,
            severity=SeverityEnum(log.severity),
            created_at=ensure_utc(log.created_at),
        )
