# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Domain tests run against a real async engine. TEST_DATABASE_URL selects
the database; by default each test gets a fresh SQLite file through
aiosqlite. Collaborators are replaced by the in-memory fakes below.
"""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from lms_core.core.config.settings import Settings
from lms_core.core.container import Services, build_services
from lms_core.domains.audit.sinks import ActivityLogEntry, AuditSink, DatabaseAuditSink
from lms_core.domains.directory.base import (
    CourseDirectory,
    CourseRef,
    EnrollmentDirectory,
    GradeScale,
    TenantGradeScale,
)
from lms_core.infrastructure.database.connection import create_sessionmaker
from lms_core.infrastructure.database.models import Base
from lms_core.models.common import ActorContext, RoleEnum
from lms_core.models.exam import ExamCreateRequest
from lms_core.utils.datetime import utc_now

TENANT_ID = "tenant-a"
OTHER_TENANT_ID = "tenant-b"
COURSE_ID = "course-math"
OTHER_COURSE_ID = "course-physics"
PROFESSOR_ID = "prof-1"
OTHER_PROFESSOR_ID = "prof-2"
ADMIN_ID = "admin-1"
STUDENT_IDS = ("student-1", "student-2", "student-3")


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeEnrollmentDirectory(EnrollmentDirectory):
    """In-memory enrollments keyed by (tenant, course)."""

    def __init__(self) -> None:
        self._active: dict[tuple[str, str], list[str]] = {}

    def enroll(self, tenant_id: str, course_id: str, *student_ids: str) -> None:
        students = self._active.setdefault((tenant_id, course_id), [])
        students.extend(s for s in student_ids if s not in students)

    def cancel(self, tenant_id: str, course_id: str, student_id: str) -> None:
        self._active.get((tenant_id, course_id), []).remove(student_id)

    async def active_enrollments(self, tenant_id: str, course_id: str) -> list[str]:
        return list(self._active.get((tenant_id, course_id), []))


class FakeCourseDirectory(CourseDirectory):
    """In-memory courses keyed by (tenant, course)."""

    def __init__(self) -> None:
        self._courses: dict[tuple[str, str], CourseRef] = {}

    def add(self, tenant_id: str, course_id: str, professor_id: str) -> None:
        self._courses[(tenant_id, course_id)] = CourseRef(id=course_id, professor_id=professor_id)

    async def get_course(self, tenant_id: str, course_id: str) -> CourseRef | None:
        return self._courses.get((tenant_id, course_id))


class FakeGradeScale(TenantGradeScale):
    """Per-tenant scales; tenants without an entry have no scale."""

    def __init__(self, scales: dict[str, GradeScale] | None = None) -> None:
        self.scales = dict(scales or {})

    async def get(self, tenant_id: str) -> GradeScale | None:
        return self.scales.get(tenant_id)


class RecordingAuditSink(AuditSink):
    """Keeps written entries in memory."""

    def __init__(self) -> None:
        self.entries: list[ActivityLogEntry] = []

    async def write(self, entry: ActivityLogEntry) -> None:
        self.entries.append(entry)

    def actions(self) -> list[str]:
        return [e.action for e in self.entries]


class FailingAuditSink(AuditSink):
    """Raises on every write."""

    async def write(self, entry: ActivityLogEntry) -> None:
        raise RuntimeError("audit store unavailable")


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    """Get the database URL for tests."""
    return os.environ.get(
        "TEST_DATABASE_URL",
        f"sqlite+aiosqlite:///{tmp_path / 'lms_core_test.db'}",
    )


@pytest_asyncio.fixture
async def db_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create an async engine with a fresh schema."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def db_sessionmaker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a sessionmaker bound to the test engine."""
    return create_sessionmaker(db_engine)


@pytest_asyncio.fixture
async def db_session(
    db_sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create the session the services under test work in."""
    async with db_sessionmaker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Collaborator and Service Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide settings for the test environment."""
    return Settings(environment="test", debug=True, log_level="DEBUG")


@pytest.fixture
def courses() -> FakeCourseDirectory:
    """Provide courses taught by PROFESSOR_ID in both tenants."""
    directory = FakeCourseDirectory()
    directory.add(TENANT_ID, COURSE_ID, PROFESSOR_ID)
    directory.add(TENANT_ID, OTHER_COURSE_ID, OTHER_PROFESSOR_ID)
    directory.add(OTHER_TENANT_ID, COURSE_ID, PROFESSOR_ID)
    return directory


@pytest.fixture
def enrollments() -> FakeEnrollmentDirectory:
    """Provide three students actively enrolled in COURSE_ID."""
    directory = FakeEnrollmentDirectory()
    directory.enroll(TENANT_ID, COURSE_ID, *STUDENT_IDS)
    return directory


@pytest.fixture
def services(
    db_session: AsyncSession,
    db_sessionmaker: async_sessionmaker[AsyncSession],
    courses: FakeCourseDirectory,
    enrollments: FakeEnrollmentDirectory,
    test_settings: Settings,
) -> Services:
    """Wire the services with a database-backed audit sink."""
    return build_services(
        db_session,
        courses=courses,
        enrollments=enrollments,
        audit_sink=DatabaseAuditSink(db_sessionmaker),
        settings=test_settings,
    )


# =============================================================================
# Actor Fixtures
# =============================================================================


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(user_id=ADMIN_ID, role=RoleEnum.ADMIN, tenant_id=TENANT_ID)


@pytest.fixture
def professor() -> ActorContext:
    return ActorContext(user_id=PROFESSOR_ID, role=RoleEnum.PROFESSOR, tenant_id=TENANT_ID)


@pytest.fixture
def other_professor() -> ActorContext:
    return ActorContext(user_id=OTHER_PROFESSOR_ID, role=RoleEnum.PROFESSOR, tenant_id=TENANT_ID)


@pytest.fixture
def student() -> ActorContext:
    return ActorContext(user_id=STUDENT_IDS[0], role=RoleEnum.STUDENT, tenant_id=TENANT_ID)


@pytest.fixture
def other_student() -> ActorContext:
    return ActorContext(user_id=STUDENT_IDS[1], role=RoleEnum.STUDENT, tenant_id=TENANT_ID)


@pytest.fixture
def foreign_admin() -> ActorContext:
    """Admin of another tenant."""
    return ActorContext(user_id="admin-b", role=RoleEnum.ADMIN, tenant_id=OTHER_TENANT_ID)


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def make_exam_request():
    """Build exam requests: finishing, ten days ahead, deadline in five days."""

    def _make(**overrides: Any) -> ExamCreateRequest:
        now = utc_now()
        data: dict[str, Any] = {
            "course_id": COURSE_ID,
            "title": "Calculus I",
            "date": now + timedelta(days=10),
            "max_points": 10,
            "passing_points": 6,
            "type": "finishing",
            "subscription_deadline": now + timedelta(days=5),
        }
        data.update(overrides)
        return ExamCreateRequest(**data)

    return _make


@pytest.fixture
def make_services(
    db_session: AsyncSession,
    courses: FakeCourseDirectory,
    enrollments: FakeEnrollmentDirectory,
    test_settings: Settings,
):
    """Wire services around the test session with custom collaborators."""

    def _make(
        grade_scale: TenantGradeScale | None = None,
        audit_sink: AuditSink | None = None,
    ) -> Services:
        return build_services(
            db_session,
            courses=courses,
            enrollments=enrollments,
            grade_scale=grade_scale,
            audit_sink=audit_sink or RecordingAuditSink(),
            settings=test_settings,
        )

    return _make


@pytest.fixture
def recording_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def failing_sink() -> FailingAuditSink:
    return FailingAuditSink()


@pytest.fixture
def grade_scales() -> FakeGradeScale:
    """Scale 6 to 10 for the main tenant; no scale elsewhere."""
    return FakeGradeScale({TENANT_ID: GradeScale(min=6, max=10)})


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
