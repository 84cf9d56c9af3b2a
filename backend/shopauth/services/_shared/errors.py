"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never depend on Flask or
HTTP. They are the stable contract between the session store, the token
issuer and the auth service.

The translation to HTTP responses (RFC 7807) is handled by
``shopauth/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to ``APIError`` through ``BaseService``.
    """

    pass


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


# --------------------------------------------------------------------------- #
# Authentication errors (surfaced to callers with a stable code)
# --------------------------------------------------------------------------- #


class AuthError(ServiceError):
    """
    Base class for auth-domain failures.

    Every subclass declares a stable machine-readable ``code``, the HTTP
    ``status`` it maps to and a client-safe default ``message``.
    """

    code: ClassVar[str] = "auth_error"
    status: ClassVar[int] = 401
    default_message: ClassVar[str] = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class AccountSuspended(AuthError):
    code = "account_suspended"
    default_message = "Your account has been suspended. Please contact support."


class AccountNotVerified(AuthError):
    code = "account_not_verified"
    default_message = "Account is not activated. Please verify your email."


class InvalidOrExpiredToken(AuthError):
    """Covers both e-mail verification codes and password-reset tokens."""

    code = "invalid_or_expired_token"
    status = 400
    default_message = "Invalid or expired token"


class SamePassword(AuthError):
    code = "same_password"
    status = 400
    default_message = "New password cannot be the same as your current password"


class InvalidSession(AuthError):
    """Refresh token unknown, revoked or expired; callers see one uniform error."""

    code = "invalid_session"
    default_message = "Invalid or expired session"


class SessionNotFound(InvalidSession):
    pass


class SessionExpired(InvalidSession):
    pass


class TokenExpired(AuthError):
    code = "token_expired"
    default_message = "Token has expired"


class TokenInvalid(AuthError):
    code = "invalid_token"
    default_message = "Invalid token"


# --------------------------------------------------------------------------- #
# Infrastructure / configuration faults (never exposed in detail)
# --------------------------------------------------------------------------- #


class SigningError(ServiceError):
    """Access tokens cannot be signed (missing or unusable secret). Not retryable."""

    def __init__(self, message: str = "Token signing is not configured") -> None:
        super().__init__(message)


class StoreUnavailable(ServiceError):
    """The session store could not be reached. Retryable."""

    def __init__(self, message: str = "Session store unavailable") -> None:
        super().__init__(message)
