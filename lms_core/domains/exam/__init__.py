# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exam domain package.

This package provides exam management functionality including:
- Exam lifecycle and automatic subscription of enrolled students
- Student subscriptions, grading and unsubscribing
"""

from lms_core.domains.exam.service import (
    ExamAccessDeniedError,
    ExamCourseNotFoundError,
    ExamHasSubscriptionsError,
    ExamNotFoundError,
    ExamService,
    ExamServiceError,
    InvalidExamError,
)
from lms_core.domains.exam.subscription_service import (
    AlreadySubscribedError,
    ExamSubscriptionService,
    InvalidGradingError,
    NotEnrolledError,
    SubscriptionAccessDeniedError,
    SubscriptionAlreadyGradedError,
    SubscriptionClosedError,
    SubscriptionCourseNotFoundError,
    SubscriptionNotFoundError,
    SubscriptionServiceError,
)

__all__ = [
    "ExamService",
    "ExamServiceError",
    "ExamNotFoundError",
    "ExamCourseNotFoundError",
    "ExamAccessDeniedError",
    "InvalidExamError",
    "ExamHasSubscriptionsError",
    "ExamSubscriptionService",
    "SubscriptionServiceError",
    "SubscriptionNotFoundError",
    "SubscriptionCourseNotFoundError",
    "SubscriptionAccessDeniedError",
    "NotEnrolledError",
    "AlreadySubscribedError",
    "SubscriptionClosedError",
    "SubscriptionAlreadyGradedError",
    "InvalidGradingError",
]
