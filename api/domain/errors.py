# SPDX-License-Identifier: Apache-2.0

"""
Business error taxonomy for the registration and collaboration engines.

Every error carries the HTTP status and problem type it maps to so the
presentation layer can render it without inspecting the class hierarchy.
Storage outages are not represented here: driver errors propagate unchanged.
"""


class DomainError(Exception):
    """Base class for expected, caller-recoverable business outcomes."""

    status_code = 400
    error_type = "domain-error"
    title = "Domain Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailedError(DomainError):
    """Input violates a business rule (bad dates, duplicate names, illegal transition)."""

    status_code = 400
    error_type = "validation-error"
    title = "Validation Error"


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    status_code = 404
    error_type = "resource-not-found"
    title = "Resource Not Found"


class ForbiddenError(DomainError):
    """The caller has no authority over the target entity."""

    status_code = 403
    error_type = "insufficient-permissions"
    title = "Forbidden"


class EventClosedError(DomainError):
    """The event no longer accepts registrations."""

    status_code = 409
    error_type = "event-closed"
    title = "Event Closed"


class ConflictError(DomainError):
    """A precondition was violated by a concurrent or repeated action."""

    status_code = 409
    error_type = "resource-conflict"
    title = "Resource Conflict"


class AlreadyRegisteredError(ConflictError):
    error_type = "already-registered"
    title = "Already Registered"


class CapacityExceededError(ConflictError):
    error_type = "capacity-exceeded"
    title = "Capacity Exceeded"


class DuplicatePendingError(ConflictError):
    error_type = "duplicate-pending"
    title = "Duplicate Pending Request"


class AlreadyResolvedError(ConflictError):
    error_type = "already-resolved"
    title = "Already Resolved"


class IssueAlreadyAssignedError(ConflictError):
    """Acceptance was recorded but the issue had been assigned meanwhile."""

    error_type = "issue-already-assigned"
    title = "Issue Already Assigned"

    def __init__(self, message: str, request=None):
        super().__init__(message)
        self.request = request


class AlreadyVotedError(ConflictError):
    error_type = "already-voted"
    title = "Already Voted"


class DuplicateFeedbackError(ConflictError):
    error_type = "duplicate-feedback"
    title = "Feedback Already Submitted"
