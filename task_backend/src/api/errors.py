"""
Error taxonomy shared by the stores, the session manager and the HTTP layer.

Every ApiError subclass carries the HTTP status it maps to; the exception
handler registered in main.py renders them as
{"error": <error name>, "message": <text>}.
"""
from __future__ import annotations


class ApiError(Exception):
    """Base class for errors that are reported to the HTTP caller."""

    status_code: int = 500
    error: str = "InternalError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return "Internal server error"

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(ApiError):
    status_code = 400
    error = "ValidationError"

    @classmethod
    def default_message(cls) -> str:
        return "Request validation failed"


class AuthenticationError(ApiError):
    status_code = 401
    error = "AuthenticationError"

    @classmethod
    def default_message(cls) -> str:
        return "Not authenticated"


class InvalidCredentials(AuthenticationError):
    """Unknown username or wrong password. Both cases share one message."""

    @classmethod
    def default_message(cls) -> str:
        return "Invalid username or password"


class NotFoundError(ApiError):
    status_code = 404
    error = "NotFoundError"

    @classmethod
    def default_message(cls) -> str:
        return "Resource not found"


class TaskNotFound(NotFoundError):
    @classmethod
    def default_message(cls) -> str:
        return "Task not found"


class UserNotFound(NotFoundError):
    @classmethod
    def default_message(cls) -> str:
        return "User not found"


class ConflictError(ApiError):
    status_code = 409
    error = "ConflictError"

    @classmethod
    def default_message(cls) -> str:
        return "Resource already exists"


class DuplicateUsername(ConflictError):
    @classmethod
    def default_message(cls) -> str:
        return "Username already exists"


class CorruptCredential(Exception):
    """A stored credential could not be decoded. Never leaves the credential store."""


class ProviderDegraded(Exception):
    """The suggestion provider failed. Never leaves the suggestion engine."""
