# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for audited persistence against a real database."""

import pytest
from sqlalchemy import func, select

from lms_core.core.exceptions import ConflictError
from lms_core.domains.audit import AuditedWriter, AuditRecorder, DatabaseAuditSink
from lms_core.infrastructure.database.models import ActivityLog, Exam, ExamSubscription
from lms_core.utils.datetime import utc_now


def make_exam(**overrides) -> Exam:
    data = {
        "tenant_id": "tenant-a",
        "course_id": "course-math",
        "professor_id": "prof-1",
        "title": "Midterm",
        "date": utc_now(),
        "max_points": 10,
        "passing_points": 6,
        "type": "finishing",
        "subscription_deadline": utc_now(),
        "created_by": "prof-1",
    }
    data.update(overrides)
    return Exam(**data)


@pytest.fixture
def writer(db_session, recording_sink) -> AuditedWriter:
    return AuditedWriter(db_session, AuditRecorder(recording_sink))


class TestAuditedWriter:
    """Tests for AuditedWriter."""

    @pytest.mark.asyncio
    async def test_create_commits_and_records(self, writer, recording_sink, db_session) -> None:
        exam = await writer.create(make_exam())

        count = await db_session.scalar(select(func.count()).select_from(Exam))
        assert count == 1
        assert exam.id is not None
        assert recording_sink.actions() == ["exam.created"]

    @pytest.mark.asyncio
    async def test_update_records_field_changes(self, writer, recording_sink) -> None:
        exam = await writer.create(make_exam())

        await writer.update(exam, {"title": "Final", "updated_by": "admin-1"})

        entry = recording_sink.entries[-1]
        assert entry.action == "exam.updated"
        assert entry.user_id == "admin-1"
        assert entry.changes == {
            "title": {"old": "Midterm", "new": "Final"},
            "updated_by": {"old": None, "new": "admin-1"},
        }

    @pytest.mark.asyncio
    async def test_delete_is_attributed_to_deleter(self, writer, recording_sink, db_session) -> None:
        exam = await writer.create(make_exam())

        await writer.delete(exam, actor_id="admin-1")

        assert await db_session.get(Exam, exam.id) is None
        entry = recording_sink.entries[-1]
        assert entry.action == "exam.deleted"
        assert entry.severity == "high"
        assert entry.user_id == "admin-1"

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_conflict(self, writer, db_session) -> None:
        exam = await writer.create(make_exam())

        def subscription() -> ExamSubscription:
            return ExamSubscription(
                tenant_id="tenant-a",
                exam_id=exam.id,
                student_id="student-1",
                created_by="student-1",
            )

        await writer.create(subscription())
        with pytest.raises(ConflictError):
            await writer.create(subscription())

        count = await db_session.scalar(select(func.count()).select_from(ExamSubscription))
        assert count == 1

    @pytest.mark.asyncio
    async def test_create_many_records_in_order(self, writer, recording_sink) -> None:
        exam = await writer.create(make_exam())

        await writer.create_many(
            [
                ExamSubscription(
                    tenant_id="tenant-a",
                    exam_id=exam.id,
                    student_id=student_id,
                    created_by="prof-1",
                )
                for student_id in ("s1", "s2")
            ]
        )

        assert recording_sink.actions() == [
            "exam.created",
            "examsubscription.created",
            "examsubscription.created",
        ]

    @pytest.mark.asyncio
    async def test_sink_failure_keeps_business_write(self, db_session, failing_sink) -> None:
        writer = AuditedWriter(db_session, AuditRecorder(failing_sink))

        exam = await writer.create(make_exam())

        assert await db_session.get(Exam, exam.id) is not None

    @pytest.mark.asyncio
    async def test_database_sink_persists_entries(self, db_session, db_sessionmaker) -> None:
        writer = AuditedWriter(db_session, AuditRecorder(DatabaseAuditSink(db_sessionmaker)))

        exam = await writer.create(make_exam())

        result = await db_session.execute(select(ActivityLog))
        logs = result.scalars().all()
        assert len(logs) == 1
        assert logs[0].action == "exam.created"
        assert logs[0].entity_id == exam.id
        assert logs[0].tenant_id == "tenant-a"
        assert logs[0].user_id == "prof-1"
