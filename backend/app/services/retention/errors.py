"""
Retention Engine Errors

Raised synchronously by mutating operations before anything is written.
Routers map NotFoundError (and InvalidAssigneeError) to 404 and
ValidationError to 400.
"""


class RetentionServiceError(Exception):
    """Base class for retention engine failures."""
    pass


class NotFoundError(RetentionServiceError):
    """Referenced member, task or assignee does not exist."""
    pass


class InvalidAssigneeError(NotFoundError):
    """Assignee exists but is not an ADMIN or STAFF user."""

    def __init__(self, message: str = "Assignee must be an ADMIN or STAFF user"):
        super().__init__(message)


class ValidationError(RetentionServiceError):
    """Request is structurally valid but carries nothing to apply."""
    pass
