"""
Service error hierarchy.

Every error a client can see is a ServiceError subclass carrying its kind
and HTTP status. The gateway renders them into the standard
{"type": "error", "message": ...} envelope.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for all errors reported to API clients."""

    kind = "internal"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class MissingFieldError(ServiceError):
    kind = "missing-field"
    status_code = 400
    default_message = "Missing required field"

    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}", {"field": field})
        self.field = field


class NoFieldsError(ServiceError):
    kind = "no-fields"
    status_code = 400
    default_message = "No valid fields provided for update"


class ValidationError(ServiceError):
    kind = "invalid-field"
    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(ServiceError):
    kind = "unauthorized"
    status_code = 401
    default_message = "No token provided"


class TokenInvalidError(UnauthorizedError):
    default_message = "Invalid token"


class TokenExpiredError(UnauthorizedError):
    default_message = "Token expired"


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(ServiceError):
    kind = "not-found"
    status_code = 404
    default_message = "Not found"


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 400
    default_message = "Conflict"


class EmailTakenError(ConflictError):
    default_message = "Email already taken. Please choose a different email."


class AlreadyRegisteredError(ConflictError):
    default_message = "User is already registered for this event"


class NotRegisteredError(ConflictError):
    default_message = "User is not registered for this event"


class AlreadyCompletedError(ConflictError):
    default_message = "Event is already marked as completed"


class CannotModifyCompletedError(ServiceError):
    kind = "cannot-modify-completed"
    status_code = 400
    default_message = "Registration cannot change on a completed event"


class InternalError(ServiceError):
    """A store failure or broken invariant. The message never carries store details."""
