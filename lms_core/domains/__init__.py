# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the grading core.

Each domain module provides services that encapsulate business logic
and write through the audited writer of the audit domain.

Domains:
    audit: Change recording, activity log queries and retention.
    directory: Read-only course, enrollment and grade scale lookups.
    exam: Exam lifecycle, subscriptions and grading.
    grade: Per-student, per-course grade ledger.
"""
