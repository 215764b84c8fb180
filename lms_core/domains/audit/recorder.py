# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Change-audit recorder.

The recorder turns before/after snapshots of ORM entities into activity
log entries:
- Created records produce "<type>.created" without changes
- Updated records produce "<type>.updated" with a {field: {old, new}} map
- Deleted records produce "<type>.deleted" with high severity

A change is attributed to the entity's updated_by, falling back to
created_by. Entities without an actor or tenant, and updates without any
relevant change, are not logged. Sink failures are logged and never
propagate to the caller.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import inspect

from lms_core.domains.audit.sinks import ActivityLogEntry, AuditSink
from lms_core.infrastructure.database.models import Exam, ExamSubscription, Grade
from lms_core.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

# Bookkeeping timestamps never reported as changes.
ALWAYS_EXCLUDED_FIELDS = frozenset({"created_at", "updated_at"})

HIGH_SEVERITY_MARKERS = ("deleted", "disabled")
MEDIUM_SEVERITY_MARKERS = ("approved", "payment", "graded")


@dataclass(frozen=True)
class AuditProfile:
    """How one entity type is audited.

    Attributes:
        entity_type: Name used in actions and entries, e.g. "Exam".
        excluded_fields: Fields ignored when diffing, on top of the
            bookkeeping fields.
    """

    entity_type: str
    excluded_fields: frozenset[str] = frozenset()

    @property
    def action_prefix(self) -> str:
        return self.entity_type.lower()


DEFAULT_PROFILES: dict[type, AuditProfile] = {
    Exam: AuditProfile("Exam"),
    ExamSubscription: AuditProfile("ExamSubscription"),
    Grade: AuditProfile("Grade"),
}


def classify_severity(action: str) -> str:
    """Derive a severity level from an action name.

    Args:
        action: Dotted action name.

    Returns:
        "high" for deletions and disablements, "medium" for approvals,
        payments and grading, otherwise "low".
    """
    if any(marker in action for marker in HIGH_SEVERITY_MARKERS):
        return "high"
    if any(marker in action for marker in MEDIUM_SEVERITY_MARKERS):
        return "medium"
    return "low"


def _normalise(value: Any) -> Any:
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    return to_jsonable_python(value)


class AuditRecorder:
    """Builds activity log entries from entity snapshots.

    Attributes:
        sink: Destination for produced entries.
        profiles: Entity class to AuditProfile mapping.
    """

    def __init__(
        self,
        sink: AuditSink,
        profiles: Mapping[type, AuditProfile] | None = None,
    ) -> None:
        """Initialize the recorder.

        Args:
            sink: Destination for produced entries.
            profiles: Per-entity profiles. Defaults to DEFAULT_PROFILES.
                Unlisted entities are audited under their class name.
        """
        self.sink = sink
        self.profiles = dict(DEFAULT_PROFILES if profiles is None else profiles)

    def profile_for(self, entity: Any) -> AuditProfile:
        """Return the profile of an entity, walking its class hierarchy."""
        for cls in type(entity).__mro__:
            profile = self.profiles.get(cls)
            if profile is not None:
                return profile
        return AuditProfile(type(entity).__name__)

    def snapshot(self, entity: Any) -> dict[str, Any]:
        """Capture the column values of an entity as JSON-compatible data.

        Args:
            entity: Mapped ORM instance with its columns loaded.

        Returns:
            Attribute name to normalised value.
        """
        mapper = inspect(entity).mapper
        return {
            attr.key: _normalise(getattr(entity, attr.key))
            for attr in mapper.column_attrs
        }

    def diff(
        self,
        before: Mapping[str, Any],
        after: Mapping[str, Any],
        profile: AuditProfile,
    ) -> dict[str, dict[str, Any]]:
        """Compare two snapshots field by field.

        Args:
            before: Snapshot taken before the mutation.
            after: Snapshot taken after the mutation.
            profile: Profile supplying per-entity exclusions.

        Returns:
            {field: {"old": ..., "new": ...}} for every differing field.
        """
        changes: dict[str, dict[str, Any]] = {}
        for key in sorted(set(before) | set(after)):
            if key.startswith("_") or key in ALWAYS_EXCLUDED_FIELDS:
                continue
            if key in profile.excluded_fields:
                continue
            old = before.get(key)
            new = after.get(key)
            if old != new:
                changes[key] = {"old": old, "new": new}
        return changes

    async def record_created(self, entity: Any) -> None:
        """Record the creation of an entity."""
        profile = self.profile_for(entity)
        await self._record(
            self.snapshot(entity),
            profile,
            action=f"{profile.action_prefix}.created",
        )

    async def record_updated(self, entity: Any, before: Mapping[str, Any]) -> None:
        """Record an update of an entity.

        Args:
            entity: The entity after the committed mutation.
            before: Snapshot taken before the mutation.
        """
        profile = self.profile_for(entity)
        after = self.snapshot(entity)
        changes = self.diff(before, after, profile)
        if not changes:
            return

        severity = "low"
        status = changes.get("status")
        if status is not None and status["new"] == "disabled":
            severity = "high"

        await self._record(
            after,
            profile,
            action=f"{profile.action_prefix}.updated",
            changes=changes,
            severity=severity,
        )

    async def record_deleted(self, entity: Any, before: Mapping[str, Any]) -> None:
        """Record the deletion of an entity.

        Args:
            entity: The deleted entity.
            before: Snapshot taken before the deletion.
        """
        profile = self.profile_for(entity)
        await self._record(
            before,
            profile,
            action=f"{profile.action_prefix}.deleted",
            severity="high",
        )

    async def log_activity(
        self,
        *,
        tenant_id: str | None,
        user_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        severity: str | None = None,
    ) -> None:
        """Record an explicit activity such as "exam.graded".

        The severity defaults to classify_severity(action). Nothing is
        written when the tenant or user is missing.
        """
        if not tenant_id or not user_id:
            logger.debug("Skipping activity %s for %s: no tenant or user", action, entity_id)
            return

        await self._emit(
            ActivityLogEntry(
                tenant_id=tenant_id,
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                changes=changes or None,
                metadata=metadata or None,
                severity=severity or classify_severity(action),
            )
        )

    async def _record(
        self,
        state: Mapping[str, Any],
        profile: AuditProfile,
        action: str,
        changes: dict[str, Any] | None = None,
        severity: str = "low",
    ) -> None:
        await self.log_activity(
            tenant_id=state.get("tenant_id"),
            user_id=state.get("updated_by") or state.get("created_by"),
            action=action,
            entity_type=profile.entity_type,
            entity_id=str(state.get("id")),
            changes=changes,
            severity=severity,
        )

    async def _emit(self, entry: ActivityLogEntry) -> None:
        try:
            await self.sink.write(entry)
        except Exception as e:
            logger.error(
                "Failed to write activity %s for %s %s: %s",
                entry.action,
                entry.entity_type,
                entry.entity_id,
                str(e),
                exc_info=True,
            )
