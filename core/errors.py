"""Structured, user-facing error types.

Every failure raised by the service layer is a MarketplaceError subclass.
The API layer renders them with a single exception handler, so services
never build HTTP responses themselves.
"""

from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    """Base class for errors surfaced to the caller."""

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(MarketplaceError):
    """Malformed rating, status value or identifier."""

    code = "validation_error"
    status_code = 400


class AuthorizationError(MarketplaceError):
    """Caller is not allowed to act on the resource."""

    code = "authorization_error"
    status_code = 403


class NotFoundError(MarketplaceError):
    """Referenced item, review or bookstore does not exist."""

    code = "not_found"
    status_code = 404


class ConflictError(MarketplaceError):
    """Concurrent write detected and retries were exhausted."""

    code = "conflict"
    status_code = 409
