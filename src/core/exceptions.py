# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception hierarchy for roster operations.

This module defines the errors every roster path raises:
- RosterError: Base exception for all roster errors
- AuthorizationError: Caller may not operate on the course or institution
- NotFoundError: Referenced course, institution or identity is absent
- InvalidRowError: A row cannot be reconciled (missing email, bad role)
- UpstreamError: Identity provider or extraction service failure
- StorageError: Non-conflict storage failure during a reconcile step

Unique-constraint conflicts are not errors here; they are absorbed by
src.infrastructure.database.conflicts.
"""


class RosterError(Exception):
    """Base exception for all roster errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize roster error.

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


class AuthorizationError(RosterError):
    """The acting principal lacks the scope required for the operation.

    Raised before any mutation is performed.
    """


class NotFoundError(RosterError):
    """A referenced entity does not exist."""


class CourseNotFoundError(NotFoundError):
    """Raised when a course is not found."""


class InstitutionNotFoundError(NotFoundError):
    """Raised when an institution is not found."""


class InvalidRowError(RosterError):
    """A row cannot be reconciled as given."""


class UpstreamError(RosterError):
    """Failure of an external collaborator.

    Attributes:
        service: Collaborator name ("identity_provider", "extraction").
        status_code: HTTP status code, when the failure was an HTTP response.
    """

    def __init__(
        self,
        message: str,
        service: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        """Initialize upstream error.

        Args:
            message: Human-readable error description.
            service: Collaborator name.
            status_code: HTTP status code from the collaborator, if any.
            details: Optional dictionary with additional error context.
        """
        self.service = service
        self.status_code = status_code
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return string representation with service and status code."""
        base = f"{self.service}: {self.message}"
        if self.status_code:
            base = f"[{self.status_code}] {base}"
        if self.details:
            base = f"{base} - Details: {self.details}"
        return base


class StorageError(RosterError):
    """Non-conflict storage failure during a reconcile step."""
