"""
Error taxonomy for Auth Backend.

Every error renders as the client envelope
``{"error": <short title>, "message": <human text>, "details": [...]}``.
"""

from typing import Any

from fastapi import status


class AuthBackendError(Exception):
    """Base class for errors that are safe to show to clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "Request failed"

    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        details: list[dict[str, Any]] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AuthBackendError):
    """Malformed or missing input."""

    error = "Validation failed"


class DuplicateError(AuthBackendError):
    """A unique field (email or username) is already in use."""

    _TITLES = {
        "email": ("Email already registered", "An account with this email already exists"),
        "username": ("Username already taken", "This username is already in use"),
    }

    def __init__(self, field: str) -> None:
        error, message = self._TITLES.get(
            field, ("Duplicate field", f"{field.capitalize()} already exists")
        )
        super().__init__(message, error=error)
        self.field = field


class AuthenticationError(AuthBackendError):
    """Missing, invalid or expired token, or bad credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Invalid credentials"


class ChallengeError(AuthBackendError):
    """OTP not found, expired or mismatched."""

    error = "Invalid OTP"


class DependencyError(AuthBackendError):
    """A collaborator (database, email) is unavailable."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal server error"
