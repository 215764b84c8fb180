"""LMS grading core.

Exam lifecycle, exam subscriptions, the grade ledger and the change-audit
recorder of the multi-tenant school management backend.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
