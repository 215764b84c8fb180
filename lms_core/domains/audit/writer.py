# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audited persistence.

AuditedWriter performs every mutating persistence call of the domain
services. Each call commits its own unit of work and then hands the
before/after state to the AuditRecorder, in mutation order.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms_core.core.exceptions import ConflictError
from lms_core.domains.audit.recorder import AuditRecorder

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")


class DuplicateRecordError(ConflictError):
    """Raised when a write violates a uniqueness constraint."""

    pass


class AuditedWriter:
    """Commits entity mutations and records them.

    Attributes:
        db: Async database session the mutations are made in.
        recorder: Recorder receiving the committed changes.
    """

    def __init__(self, db: AsyncSession, recorder: AuditRecorder) -> None:
        """Initialize the writer.

        Args:
            db: Async database session.
            recorder: Audit recorder.
        """
        self.db = db
        self.recorder = recorder

    async def create(self, entity: EntityT) -> EntityT:
        """Insert an entity and record its creation.

        Args:
            entity: New ORM instance, with created_by set.

        Returns:
            The persisted and refreshed entity.

        Raises:
            DuplicateRecordError: If a uniqueness constraint is violated.
        """
        self.db.add(entity)
        await self._commit()
        await self.db.refresh(entity)
        await self.recorder.record_created(entity)
        return entity

    async def create_many(self, entities: Sequence[EntityT]) -> list[EntityT]:
        """Insert several entities in one commit and record each creation.

        Raises:
            DuplicateRecordError: If a uniqueness constraint is violated;
                nothing is inserted in that case.
        """
        if not entities:
            return []

        self.db.add_all(entities)
        await self._commit()
        for entity in entities:
            await self.db.refresh(entity)
        for entity in entities:
            await self.recorder.record_created(entity)
        return list(entities)

    async def update(self, entity: EntityT, changes: Mapping[str, Any]) -> EntityT:
        """Apply attribute changes, commit and record the difference.

        Args:
            entity: Persistent ORM instance.
            changes: Attribute name to new value. Should include updated_by.

        Returns:
            The refreshed entity.

        Raises:
            DuplicateRecordError: If a uniqueness constraint is violated.
        """
        before = self.recorder.snapshot(entity)
        for key, value in changes.items():
            setattr(entity, key, value)
        await self._commit()
        await self.db.refresh(entity)
        await self.recorder.record_updated(entity, before)
        return entity

    async def delete(self, entity: Any, actor_id: str | None = None) -> None:
        """Delete an entity and record the deletion.

        Args:
            entity: Persistent ORM instance.
            actor_id: User performing the deletion. Stamped into updated_by
                so the deletion is attributed to them.
        """
        if actor_id is not None and hasattr(entity, "updated_by"):
            entity.updated_by = actor_id
        before = self.recorder.snapshot(entity)
        await self.db.delete(entity)
        await self._commit()
        await self.recorder.record_deleted(entity, before)

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Write rejected by constraint: %s", str(e.orig))
            raise DuplicateRecordError(
                "Record conflicts with an existing record",
                {"constraint_error": str(e.orig)},
            ) from e
