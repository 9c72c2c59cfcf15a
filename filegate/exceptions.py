"""Custom exception hierarchy for FileGate.

Provides structured error types that the centralized error handler
translates into consistent JSON responses. Messages on these errors are
shown to callers, so they must stay generic for authorization failures.
"""

from __future__ import annotations


class FileGateError(Exception):
    """Base exception for all FileGate HTTP-facing errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class ValidationError(FileGateError):
    """Malformed identifier or request input."""

    status_code = 400
    error_type = "validation_error"


class UnauthorizedError(FileGateError):
    """Missing or invalid credentials."""

    status_code = 401
    error_type = "unauthorized"


class ForbiddenError(FileGateError):
    """Authenticated but not authorized."""

    status_code = 403
    error_type = "forbidden"


class NotFoundError(FileGateError):
    """Requested resource was not found."""

    status_code = 404
    error_type = "not_found"


class ConflictError(FileGateError):
    """Resource already exists."""

    status_code = 409
    error_type = "conflict"


class StorageError(FileGateError):
    """Database or storage layer failure, including lookup timeouts."""

    status_code = 503
    error_type = "storage_error"
