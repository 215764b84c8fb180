# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy shared by the domain services.

Every rejected operation raises one of the categories below with a
specific human-readable reason:
- InvalidArgumentError: Malformed or out-of-range input
- NotFoundError: Referenced record absent or owned by another tenant
- ForbiddenError: Role or ownership check failed
- ConflictError: Duplicate subscription or grade key
- InvalidStateError: Operation illegal for the current lifecycle state

Domain services derive their own exceptions from both their service
base class and one of these categories, so callers can catch either.
"""


class CoreError(Exception):
    """Base exception for all grading core errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        """Initialize core error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class InvalidArgumentError(CoreError):
    """Input is malformed or outside its allowed range."""

    code = "invalid_argument"


class NotFoundError(CoreError):
    """Referenced record does not exist in the caller's tenant."""

    code = "not_found"


class ForbiddenError(CoreError):
    """Caller's role or ownership does not allow the operation."""

    code = "forbidden"


class ConflictError(CoreError):
    """A record with the same unique key already exists."""

    code = "conflict"


class InvalidStateError(CoreError):
    """Operation is not allowed in the record's current lifecycle state."""

    code = "invalid_state"
