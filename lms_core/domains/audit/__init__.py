# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Audit domain package.

This package provides the change-audit recorder and the activity log:
- AuditRecorder and AuditedWriter for recording entity mutations
- AuditSink implementations for persisting entries
- ActivityLogService for reading, aggregating and purging entries
"""

from lms_core.domains.audit.recorder import (
    ALWAYS_EXCLUDED_FIELDS,
    DEFAULT_PROFILES,
    AuditProfile,
    AuditRecorder,
    classify_severity,
)
from lms_core.domains.audit.service import (
    ActivityLogAccessDeniedError,
    ActivityLogService,
    ActivityLogServiceError,
    InvalidActivityQueryError,
)
from lms_core.domains.audit.sinks import ActivityLogEntry, AuditSink, DatabaseAuditSink
from lms_core.domains.audit.writer import AuditedWriter, DuplicateRecordError

__all__ = [
    "ALWAYS_EXCLUDED_FIELDS",
    "DEFAULT_PROFILES",
    "AuditProfile",
    "AuditRecorder",
    "classify_severity",
    "ActivityLogAccessDeniedError",
    "ActivityLogService",
    "ActivityLogServiceError",
    "InvalidActivityQueryError",
    "ActivityLogEntry",
    "AuditSink",
    "DatabaseAuditSink",
    "AuditedWriter",
    "DuplicateRecordError",
]
