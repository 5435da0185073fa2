"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; the application registers a
single handler that renders them as ``{"detail": message}``.
"""

from __future__ import annotations

from fastapi import status


class ChatError(RuntimeError):
    """Base exception for all Chatline service failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    headers: dict[str, str] | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """Missing or invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(ChatError):
    """Missing or invalid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(ChatError):
    """Authenticated but not entitled to the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ChatError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ChatError):
    """The operation would duplicate or contradict existing state."""

    status_code = status.HTTP_409_CONFLICT


class InternalError(ChatError):
    """Unexpected failure; the application renders uncaught exceptions as this."""


__all__ = [
    "ChatError",
    "Conflict",
    "Forbidden",
    "InternalError",
    "NotFound",
    "Unauthorized",
    "ValidationError",
]
