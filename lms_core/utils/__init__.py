# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from lms_core.utils.datetime import days_ago, ensure_utc, is_expired, utc_now
from lms_core.utils.logging import bound_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bound_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "days_ago",
    "is_expired",
]
