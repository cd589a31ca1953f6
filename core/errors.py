"""
core/errors.py -- Error taxonomy shared by every Bancarios component.

Every error raised by the core is an AppError with four public fields:

  name         stable kind string (ErrorKind value), safe to match on
  message      human-readable description of what went wrong
  action       what the caller can do about it
  status_code  HTTP-style status the boundary layer should answer with

plus an internal-only `cause` holding the low-level exception, if any.
to_dict() renders the public fields and never the cause: a driver error can
carry SQL text, hostnames or credentials, none of which may reach a client.

Kinds raised by the core: ValidationError, NotFoundError, UnauthorizedError,
ServiceError. InternalServerError and MethodNotAllowedError exist for the
boundary layer (api/main.py), which wraps anything unexpected.

Layer rule: no imports from api/, auth/, or db/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    validation = "ValidationError"
    not_found = "NotFoundError"
    unauthorized = "UnauthorizedError"
    service = "ServiceError"
    internal = "InternalServerError"
    method_not_allowed = "MethodNotAllowedError"


class AppError(Exception):
    """Base class for every error the application raises on purpose.

    Subclasses set the class-level defaults; callers override message and
    action per raise site when a more specific text helps the client.
    """

    kind: ErrorKind = ErrorKind.internal
    status_code: int = 500
    default_message: str = "An unexpected internal error occurred."
    default_action: str = "Contact support."

    def __init__(
        self,
        message: str | None = None,
        *,
        action: str | None = None,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.action = action or self.default_action
        self.cause = cause
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def name(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "message": self.message,
            "action": self.action,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status_code={self.status_code})"


class ValidationError(AppError):
    """Client-correctable input: duplicate username/email, bad field values."""

    kind = ErrorKind.validation
    status_code = 400
    default_message = "A validation error occurred."
    default_action = "Adjust the data sent and try again."


class NotFoundError(AppError):
    """A lookup matched zero rows."""

    kind = ErrorKind.not_found
    status_code = 404
    default_message = "The requested resource could not be found."
    default_action = "Check that the parameters sent in the request are correct."


class UnauthorizedError(AppError):
    """A session or credential check failed."""

    kind = ErrorKind.unauthorized
    status_code = 401
    default_message = "User is not authenticated."
    default_action = "Log in again to continue."


class ServiceError(AppError):
    """Storage or migration infrastructure failure."""

    kind = ErrorKind.service
    status_code = 503
    default_message = "Service unavailable at the moment."
    default_action = "Check that the service is available."


class UniqueViolationError(ServiceError):
    """A storage-level uniqueness constraint rejected a write.

    Raised by db.database for IntegrityError on a unique index. Still a
    ServiceError for anyone who does not care; auth.store catches it and
    turns it into a ValidationError for the duplicate-signup race.
    """


class InternalServerError(AppError):
    """Boundary-layer wrapper for anything that is not an AppError."""

    kind = ErrorKind.internal
    status_code = 500


class MethodNotAllowedError(AppError):
    kind = ErrorKind.method_not_allowed
    status_code = 405
    default_message = "Method not allowed for this endpoint."
    default_action = "Check that the HTTP method sent is valid for this endpoint."
