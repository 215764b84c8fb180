# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the grading core.

All timestamps are handled as timezone-aware UTC datetimes. Database
drivers that hand back naive values (SQLite) are normalised through
ensure_utc() before any comparison against utc_now().

Usage:
------
    from lms_core.utils.datetime import utc_now, ensure_utc

    # Deadline checks
    if utc_now() > ensure_utc(exam.subscription_deadline):
        ...

    # SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_ago(days: int) -> datetime:
    """Get a datetime N days ago from now.

    Args:
        days: Number of days to go back.

    Returns:
        Timezone-aware UTC datetime.
    """
    return utc_now() - timedelta(days=days)


def is_expired(deadline: datetime | None, now: datetime | None = None) -> bool:
    """Check whether a deadline has passed.

    A missing deadline never expires. The deadline instant itself still
    counts as open.

    Args:
        deadline: The deadline to check.
        now: Reference time, defaults to utc_now().

    Returns:
        True if now is strictly after the deadline.
    """
    if deadline is None:
        return False

    reference = ensure_utc(now) if now is not None else utc_now()
    return reference > ensure_utc(deadline)
