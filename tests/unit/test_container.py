# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for service wiring."""

import pytest
import structlog

from lms_core.core.config.settings import DatabaseSettings, GradingSettings, Settings
from lms_core.core.container import actor_scope, build_services, shutdown, startup
from lms_core.domains.directory import SettingsGradeScale
from lms_core.infrastructure.database import check_database_connection
from lms_core.utils.logging import bound_context
from tests.conftest import RecordingAuditSink


@pytest.mark.asyncio
async def test_services_share_session_and_recorder(db_session, courses, enrollments) -> None:
    sink = RecordingAuditSink()
    services = build_services(
        db_session,
        courses=courses,
        enrollments=enrollments,
        audit_sink=sink,
        settings=Settings(environment="test"),
    )

    assert services.exams.writer is services.subscriptions.writer
    assert services.exams.writer.recorder is services.recorder
    assert services.subscriptions.ledger is services.grades
    assert services.activity_logs.db is db_session
    assert services.recorder.sink is sink


@pytest.mark.asyncio
async def test_default_grade_scale_follows_settings(db_session, courses, enrollments) -> None:
    settings = Settings(environment="test", grading=GradingSettings(scale_min=1, scale_max=30))
    services = build_services(
        db_session,
        courses=courses,
        enrollments=enrollments,
        audit_sink=RecordingAuditSink(),
        settings=settings,
    )

    assert isinstance(services.grades.grade_scale, SettingsGradeScale)
    scale = await services.grades.grade_scale.get("tenant-a")
    assert (scale.min, scale.max) == (1, 30)


def test_actor_scope_binds_and_clears(admin) -> None:
    with actor_scope(admin):
        bound = structlog.contextvars.get_contextvars()
        assert bound["tenant_id"] == admin.tenant_id
        assert bound["user_id"] == admin.user_id
        assert bound["role"] == "admin"

    assert structlog.contextvars.get_contextvars() == {}


def test_actor_scope_restores_outer_fields(admin) -> None:
    with bound_context(request_id="req-1"):
        with actor_scope(admin):
            assert structlog.contextvars.get_contextvars()["request_id"] == "req-1"
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}


@pytest.mark.asyncio
async def test_startup_and_shutdown(tmp_path) -> None:
    settings = Settings(
        environment="test",
        log_level="WARNING",
        db=DatabaseSettings(url_override=f"sqlite+aiosqlite:///{tmp_path / 'core.db'}"),
    )

    await startup(settings)
    try:
        assert await check_database_connection() is True
    finally:
        await shutdown()

    assert await check_database_connection() is False
