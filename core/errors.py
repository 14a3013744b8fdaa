"""
core/errors.py -- Error taxonomy shared by every layer.

Each error carries the HTTP status and the public message the client sees.
Lower layers raise these and never log them; api/main.py registers a single
exception handler that turns them into responses. That handler is the only
place where an error is translated and logged.

Public messages are fixed strings. They must never contain usernames,
passwords, digests, tokens, filesystem paths, or secret values -- chain the
underlying exception with `raise ... from exc` instead, so the server-side
traceback keeps the detail.

Layer rule: core/ is the kernel. No imports from api/, auth/, or resources/.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors that map to a specific HTTP response."""

    status_code: int = 500
    message: str = "internal error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Missing or malformed input."""

    status_code = 400
    message = "invalid request"


class InvalidCredentialsError(ServiceError):
    """Login failed. Identical for unknown user and wrong password."""

    status_code = 401
    message = "invalid credentials"


class SessionError(ServiceError):
    status_code = 401
    message = "authentication required"


class ExpiredError(SessionError):
    message = "session expired"


class UnknownTokenError(SessionError):
    pass


class RevokedError(UnknownTokenError):
    """The token was valid but its session has been logged out."""


class ForbiddenError(ServiceError):
    status_code = 403
    message = "forbidden"


class InvalidPathError(ServiceError):
    status_code = 400
    message = "invalid file path"


class NotFoundError(ServiceError):
    status_code = 404
    message = "file not found"


class InternalError(ServiceError):
    """Hashing, database, or filesystem failure."""


class DeadlineExceededError(ServiceError):
    status_code = 504
    message = "request timed out"
