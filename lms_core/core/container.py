# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Service wiring and process lifecycle.

The host application calls startup() once, then builds the services for
each unit of work from a request-scoped session:

    await startup()
    async with get_session() as session:
        services = build_services(session, courses=..., enrollments=...)
        with actor_scope(actor):
            await services.exams.create_exam(actor, request)
    await shutdown()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from lms_core.core.config.settings import Settings, get_settings
from lms_core.domains.audit.recorder import AuditRecorder
from lms_core.domains.audit.service import ActivityLogService
from lms_core.domains.audit.sinks import AuditSink, DatabaseAuditSink
from lms_core.domains.audit.writer import AuditedWriter
from lms_core.domains.directory.base import (
    CourseDirectory,
    EnrollmentDirectory,
    SettingsGradeScale,
    TenantGradeScale,
)
from lms_core.domains.exam.service import ExamService
from lms_core.domains.exam.subscription_service import ExamSubscriptionService
from lms_core.domains.grade.service import GradeLedgerService
from lms_core.infrastructure.database.connection import (
    close_database,
    get_sessionmaker,
    init_database,
)
from lms_core.models.common import ActorContext
from lms_core.utils.logging import bound_context, get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class Services:
    """Domain services sharing one session and one audit recorder."""

    exams: ExamService
    subscriptions: ExamSubscriptionService
    grades: GradeLedgerService
    activity_logs: ActivityLogService
    recorder: AuditRecorder


def build_services(
    db: AsyncSession,
    *,
    courses: CourseDirectory,
    enrollments: EnrollmentDirectory,
    grade_scale: TenantGradeScale | None = None,
    audit_sink: AuditSink | None = None,
    settings: Settings | None = None,
) -> Services:
    """Wire the domain services around a session.

    Args:
        db: Session for the unit of work.
        courses: Course directory.
        enrollments: Enrollment directory.
        grade_scale: Tenant grade scales. Defaults to the configured scale.
        audit_sink: Destination for activity entries. Defaults to the
            activity_logs table, written through the global sessionmaker.
        settings: Settings. Defaults to the global settings.

    Returns:
        The wired services.
    """
    settings = settings or get_settings()
    sink = audit_sink or DatabaseAuditSink(get_sessionmaker())
    recorder = AuditRecorder(sink)
    writer = AuditedWriter(db, recorder)

    ledger = GradeLedgerService(
        db,
        writer,
        grade_scale or SettingsGradeScale(settings.grading),
        courses,
    )
    return Services(
        exams=ExamService(db, writer, courses, enrollments),
        subscriptions=ExamSubscriptionService(
            db, writer, courses, enrollments, ledger, settings.grading
        ),
        grades=ledger,
        activity_logs=ActivityLogService(db, settings.audit),
        recorder=recorder,
    )


async def startup(settings: Settings | None = None) -> None:
    """Configure logging and open the database pool."""
    settings = settings or get_settings()
    setup_logging(settings)
    await init_database(settings)
    logger.info("grading_core_started", environment=settings.environment)


async def shutdown() -> None:
    """Close the database pool."""
    await close_database()
    logger.info("grading_core_stopped")


@contextmanager
def actor_scope(actor: ActorContext) -> Iterator[None]:
    """Bind the caller's tenant and user to log events emitted inside the block."""
    with bound_context(tenant_id=actor.tenant_id, user_id=actor.user_id, role=actor.role.value):
        yield
