# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the exam lifecycle service."""

from datetime import timedelta

import pytest

from lms_core.core.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from lms_core.domains.exam import (
    ExamAccessDeniedError,
    ExamCourseNotFoundError,
    ExamHasSubscriptionsError,
    ExamNotFoundError,
    InvalidExamError,
)
from lms_core.models.activity_log import ActivityLogFilter
from lms_core.models.common import ExamTypeEnum, SubscriptionStatusEnum
from lms_core.models.exam import ExamUpdateRequest
from lms_core.utils.datetime import utc_now


class TestCreateExam:
    """Tests for exam creation."""

    @pytest.mark.asyncio
    async def test_preliminary_exam_subscribes_enrolled_students(
        self, services, professor, make_exam_request
    ) -> None:
        """Test a preliminary exam fans out to every active enrollment."""
        exam = await services.exams.create_exam(
            professor,
            make_exam_request(type="preliminary", subscription_deadline=None),
        )

        subscriptions, total = await services.subscriptions.list_subscriptions(
            professor, exam_id=exam.id
        )
        assert total == 3
        assert {s.student_id for s in subscriptions} == {"student-1", "student-2", "student-3"}
        assert all(s.status == SubscriptionStatusEnum.SUBSCRIBED for s in subscriptions)

    @pytest.mark.asyncio
    async def test_preliminary_deadline_defaults_to_exam_date(
        self, services, professor, make_exam_request
    ) -> None:
        request = make_exam_request(type="preliminary", subscription_deadline=None)

        exam = await services.exams.create_exam(professor, request)

        assert exam.subscription_deadline == request.date

    @pytest.mark.asyncio
    async def test_finishing_exam_has_no_automatic_subscriptions(
        self, services, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        _, total = await services.subscriptions.list_subscriptions(professor, exam_id=exam.id)
        assert total == 0
        assert exam.type == ExamTypeEnum.FINISHING
        assert exam.professor_id == professor.user_id
        assert exam.created_by == professor.user_id

    @pytest.mark.asyncio
    async def test_fan_out_skips_cancelled_enrollments(
        self, services, professor, enrollments, make_exam_request
    ) -> None:
        enrollments.cancel("tenant-a", "course-math", "student-2")

        exam = await services.exams.create_exam(
            professor, make_exam_request(type="preliminary", subscription_deadline=None)
        )

        subscriptions, _ = await services.subscriptions.list_subscriptions(
            professor, exam_id=exam.id
        )
        assert {s.student_id for s in subscriptions} == {"student-1", "student-3"}

    @pytest.mark.asyncio
    async def test_admin_creates_exam_for_course_professor(
        self, services, admin, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(admin, make_exam_request())

        assert exam.professor_id == "prof-1"
        assert exam.created_by == admin.user_id

    @pytest.mark.asyncio
    async def test_professor_must_teach_course(
        self, services, other_professor, make_exam_request
    ) -> None:
        with pytest.raises(ExamAccessDeniedError):
            await services.exams.create_exam(other_professor, make_exam_request())

    @pytest.mark.asyncio
    async def test_student_cannot_create(self, services, student, make_exam_request) -> None:
        with pytest.raises(ForbiddenError):
            await services.exams.create_exam(student, make_exam_request())

    @pytest.mark.asyncio
    async def test_unknown_course(self, services, professor, make_exam_request) -> None:
        with pytest.raises(ExamCourseNotFoundError):
            await services.exams.create_exam(professor, make_exam_request(course_id="nope"))

    @pytest.mark.asyncio
    async def test_finishing_exam_requires_deadline(
        self, services, professor, make_exam_request
    ) -> None:
        with pytest.raises(InvalidExamError, match="deadline"):
            await services.exams.create_exam(
                professor, make_exam_request(subscription_deadline=None)
            )

    @pytest.mark.asyncio
    async def test_passing_points_cannot_exceed_max(
        self, services, professor, make_exam_request
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            await services.exams.create_exam(
                professor, make_exam_request(max_points=10, passing_points=11)
            )

    @pytest.mark.asyncio
    async def test_deadline_cannot_follow_exam_date(
        self, services, professor, make_exam_request
    ) -> None:
        date = utc_now() + timedelta(days=3)

        with pytest.raises(InvalidExamError):
            await services.exams.create_exam(
                professor,
                make_exam_request(date=date, subscription_deadline=date + timedelta(hours=1)),
            )

    @pytest.mark.asyncio
    async def test_creation_is_audited(
        self, services, admin, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(
            professor, make_exam_request(type="preliminary", subscription_deadline=None)
        )

        page = await services.activity_logs.list_logs(admin, ActivityLogFilter(entity_type="Exam"))
        assert [log.action for log in page.logs] == ["exam.created"]
        assert page.logs[0].entity_id == exam.id
        assert page.logs[0].user_id == professor.user_id

        subscription_logs = await services.activity_logs.list_logs(
            admin, ActivityLogFilter(action="examsubscription.created")
        )
        assert subscription_logs.pagination.total == 3


class TestUpdateExam:
    """Tests for exam updates."""

    @pytest.mark.asyncio
    async def test_update_fields(self, services, professor, make_exam_request) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        updated = await services.exams.update_exam(
            professor, exam.id, ExamUpdateRequest(title="Calculus I - Final", location="Hall B")
        )

        assert updated.title == "Calculus I - Final"
        assert updated.location == "Hall B"
        assert updated.updated_by == professor.user_id

    @pytest.mark.asyncio
    async def test_flip_to_preliminary_adds_missing_subscriptions(
        self, services, professor, student, make_exam_request
    ) -> None:
        """Test a finishing to preliminary flip subscribes only students without one."""
        exam = await services.exams.create_exam(professor, make_exam_request())
        await services.subscriptions.subscribe_to_exam(student, exam.id)

        await services.exams.update_exam(
            professor, exam.id, ExamUpdateRequest(type=ExamTypeEnum.PRELIMINARY)
        )

        subscriptions, total = await services.subscriptions.list_subscriptions(
            professor, exam_id=exam.id
        )
        assert total == 3
        assert sorted(s.student_id for s in subscriptions) == [
            "student-1",
            "student-2",
            "student-3",
        ]

    @pytest.mark.asyncio
    async def test_flip_to_finishing_keeps_subscriptions(
        self, services, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(
            professor, make_exam_request(type="preliminary", subscription_deadline=None)
        )

        await services.exams.update_exam(
            professor, exam.id, ExamUpdateRequest(type=ExamTypeEnum.FINISHING)
        )

        _, total = await services.subscriptions.list_subscriptions(professor, exam_id=exam.id)
        assert total == 3

    @pytest.mark.asyncio
    async def test_invariants_checked_on_merged_state(
        self, services, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request(max_points=10))

        with pytest.raises(InvalidExamError):
            await services.exams.update_exam(
                professor, exam.id, ExamUpdateRequest(passing_points=12)
            )

    @pytest.mark.asyncio
    async def test_null_required_fields_are_ignored(
        self, services, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        updated = await services.exams.update_exam(
            professor, exam.id, ExamUpdateRequest(title=None, description="Bring a calculator")
        )

        assert updated.title == exam.title
        assert updated.description == "Bring a calculator"

    @pytest.mark.asyncio
    async def test_only_owner_or_admin(
        self, services, professor, other_professor, admin, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        with pytest.raises(ExamAccessDeniedError):
            await services.exams.update_exam(
                other_professor, exam.id, ExamUpdateRequest(title="Hijacked")
            )

        updated = await services.exams.update_exam(admin, exam.id, ExamUpdateRequest(is_active=False))
        assert updated.is_active is False

    @pytest.mark.asyncio
    async def test_update_is_audited_with_changes(
        self, services, admin, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        await services.exams.update_exam(professor, exam.id, ExamUpdateRequest(title="Renamed"))

        history = await services.activity_logs.entity_activity(admin, "Exam", exam.id)
        assert history[0].action == "exam.updated"
        assert history[0].changes == {
            "title": {"old": "Calculus I", "new": "Renamed"},
            "updated_by": {"old": None, "new": professor.user_id},
        }


class TestDeleteExam:
    """Tests for exam deletion."""

    @pytest.mark.asyncio
    async def test_delete_without_subscriptions(
        self, services, admin, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        result = await services.exams.delete_exam(professor, exam.id)

        assert result.id == exam.id
        with pytest.raises(ExamNotFoundError):
            await services.exams.get_exam(professor, exam.id)

        deleted = await services.activity_logs.list_logs(
            admin, ActivityLogFilter(severity="high")
        )
        assert [log.action for log in deleted.logs] == ["exam.deleted"]
        assert deleted.logs[0].user_id == professor.user_id

    @pytest.mark.asyncio
    async def test_pending_subscription_blocks_delete(
        self, services, admin, professor, student, make_exam_request
    ) -> None:
        """Test a student's pending subscription survives a delete attempt."""
        exam = await services.exams.create_exam(professor, make_exam_request())
        subscription = await services.subscriptions.subscribe_to_exam(student, exam.id)

        with pytest.raises(ExamHasSubscriptionsError):
            await services.exams.delete_exam(professor, exam.id)
        with pytest.raises(InvalidStateError):
            await services.exams.delete_exam(admin, exam.id)

        kept = await services.subscriptions.get_subscription(student, subscription.id)
        assert kept.status == SubscriptionStatusEnum.SUBSCRIBED
        assert (await services.exams.get_exam(professor, exam.id)).id == exam.id

    @pytest.mark.asyncio
    async def test_delete_after_student_unsubscribes(
        self, services, professor, student, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())
        subscription = await services.subscriptions.subscribe_to_exam(student, exam.id)
        await services.subscriptions.unsubscribe_from_exam(student, subscription.id)

        result = await services.exams.delete_exam(professor, exam.id)

        assert result.id == exam.id

    @pytest.mark.asyncio
    async def test_delete_rejected_with_graded_subscriptions(
        self, services, professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(
            professor, make_exam_request(type="preliminary", subscription_deadline=None)
        )
        subscriptions, _ = await services.subscriptions.list_subscriptions(
            professor, exam_id=exam.id
        )
        await services.subscriptions.grade_exam(professor, subscriptions[0].id, points=8)

        with pytest.raises(ExamHasSubscriptionsError):
            await services.exams.delete_exam(professor, exam.id)

        assert (await services.exams.get_exam(professor, exam.id)).id == exam.id

    @pytest.mark.asyncio
    async def test_delete_requires_owner(
        self, services, professor, other_professor, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        with pytest.raises(ExamAccessDeniedError):
            await services.exams.delete_exam(other_professor, exam.id)


class TestReadExams:
    """Tests for exam lookup and listing."""

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_exam(
        self, services, professor, foreign_admin, make_exam_request
    ) -> None:
        exam = await services.exams.create_exam(professor, make_exam_request())

        with pytest.raises(NotFoundError):
            await services.exams.get_exam(foreign_admin, exam.id)
        _, total = await services.exams.list_exams(foreign_admin)
        assert total == 0

    @pytest.mark.asyncio
    async def test_list_sorted_by_date_with_filters(
        self, services, professor, admin, make_exam_request
    ) -> None:
        now = utc_now()
        late = await services.exams.create_exam(
            professor,
            make_exam_request(
                title="Late",
                date=now + timedelta(days=20),
                subscription_deadline=now + timedelta(days=15),
            ),
        )
        early = await services.exams.create_exam(
            professor,
            make_exam_request(
                title="Early",
                date=now + timedelta(days=2),
                subscription_deadline=now + timedelta(days=1),
            ),
        )
        await services.exams.create_exam(
            admin, make_exam_request(title="Physics", course_id="course-physics")
        )
        await services.exams.update_exam(professor, late.id, ExamUpdateRequest(is_active=False))

        exams, total = await services.exams.list_exams(professor, course_id="course-math")
        assert total == 2
        assert [e.id for e in exams] == [early.id, late.id]

        active, _ = await services.exams.list_exams(professor, professor_id="prof-1", is_active=True)
        assert [e.title for e in active] == ["Early"]

        first_page, total_all = await services.exams.list_exams(professor, limit=1)
        assert total_all == 3
        assert len(first_page) == 1
