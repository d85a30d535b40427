# workhub/auth/errors.py
"""
Error taxonomy for identity reconciliation and session bootstrap.

Every error carries the HTTP status the route layer should answer with and a
stable machine-readable ``code``. The exception handler in ``workhub.main``
renders them as ``{"error": <message>, "code": <code>, "details": ...}``.
"""
from __future__ import annotations

from typing import Any


class AuthError(Exception):
    """Base class for auth errors."""

    status_code: int = 400
    code: str = "AUTH_ERROR"
    default_message: str = "Authentication failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: Any = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details
        if code:
            self.code = code


class MissingCredential(AuthError):
    """Raised when a required credential or field is absent from the request."""

    status_code = 400
    code = "MISSING_CREDENTIAL"
    default_message = "Missing access token"


class InvalidToken(AuthError):
    """Raised when the provider rejects a bearer token."""

    status_code = 401
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class Unauthorized(AuthError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class InvalidCredentials(AuthError):
    """Raised when sign-in fails or the provider grants no session."""

    status_code = 401
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class WeakPassword(AuthError):
    status_code = 400
    code = "WEAK_PASSWORD"
    default_message = "Password must be at least 6 characters long"


class RegistrationRejected(AuthError):
    """Raised when the provider refuses a sign-up for a user-facing reason."""

    status_code = 400
    code = "REGISTRATION_REJECTED"
    default_message = "Failed to create user"


class ProviderConfigurationError(AuthError):
    """
    Raised when the provider fails because of a deployment defect.

    Distinct from ``RegistrationRejected``: the caller did nothing wrong, the
    provider's storage hooks are broken. ``details`` carries remediation text.
    """

    status_code = 500
    code = "PROVIDER_CONFIGURATION_ERROR"
    default_message = "Database configuration error. Please check your identity provider database setup."


class ProviderUnavailable(AuthError):
    status_code = 503
    code = "PROVIDER_UNAVAILABLE"
    default_message = "Identity provider is unavailable. Please try again in a moment."


class ProfileWriteFailure(AuthError):
    """
    Raised by the profile store when a write fails.

    Swallowed (and logged) on best-effort paths; surfaced only by explicit
    profile updates.
    """

    status_code = 500
    code = "PROFILE_WRITE_FAILURE"
    default_message = "Failed to update profile"


class ProviderError(Exception):
    """Raised by provider adapters when the provider returns an error payload."""

    def __init__(self, code: str, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
