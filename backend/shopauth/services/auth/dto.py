# shopauth/services/auth/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email (normalized by the service).
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param device: Client description stored on the session.
    :type device: str | None
    :param ip: Client address stored on the session.
    :type ip: str | None
    """

    email: str
    password: str
    device: str | None = None
    ip: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh token returned at login.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout of the current device.

    :param refresh_token: Opaque refresh token to revoke.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class VerifyEmailIn:
    email: str
    code: str


@dataclass(frozen=True, slots=True)
class ResetPasswordIn:
    """
    :param token: Opaque reset token delivered by e-mail.
    :param new_password: Raw replacement password.
    """

    token: str
    new_password: str


@dataclass(frozen=True, slots=True)
class ChangePasswordIn:
    """
    :param user_id: Authenticated user.
    :param current_password: Raw current password (re-authentication).
    :param new_password: Raw replacement password.
    """

    user_id: int
    current_password: str
    new_password: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """
    Client-safe projection of a user.

    :param id: User id.
    :param email: Normalized e-mail.
    :param full_name: Display name.
    :param role: Role value.
    :param shop_id: Owning shop.
    :param status: Status value.
    :param verified: Both verification flags set.
    :param last_login_at: Last successful login.
    """

    id: int
    email: str
    full_name: str | None
    role: str
    shop_id: int | None
    status: str
    verified: bool
    last_login_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class LoginOut:
    """
    :param user: Authenticated user.
    :param access_token: Signed access JWT.
    :param refresh_token: Opaque refresh token bound to the new session.
    """

    user: UserPublicOut
    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class RefreshOut:
    """
    :param access_token: Newly minted access JWT.
    :param refresh_token: The presented refresh token, unchanged.
    """

    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class LogoutOut:
    revoked: bool


@dataclass(frozen=True, slots=True)
class LogoutAllOut:
    revoked_count: int


@dataclass(frozen=True, slots=True)
class ResetPasswordOut:
    user_id: int


@dataclass(frozen=True, slots=True)
class UniformOut:
    """Response whose content never depends on whether an account exists."""

    message: str


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """
    Auth core configuration, built once at startup and injected.

    :param access_secret: Access-token signing secret (``None`` disables signing).
    :param algorithm: JWS algorithm.
    :param access_ttl: Access-token lifetime.
    :param refresh_ttl: Session / refresh-token lifetime.
    :param max_active_sessions: Active-session ceiling per user.
    :param verification_code_ttl: E-mail verification code lifetime.
    :param reset_token_ttl: Password-reset token lifetime.
    """

    access_secret: str | None = None
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=30)
    max_active_sessions: int = 5
    verification_code_ttl: timedelta = timedelta(hours=24)
    reset_token_ttl: timedelta = timedelta(hours=1)

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> AuthConfig:
        """Build from a Flask-style config mapping, falling back to defaults."""
        return cls(
            access_secret=cfg.get("JWT_ACCESS_SECRET") or None,
            algorithm=cfg.get("JWT_ALGORITHM") or "HS256",
            access_ttl=timedelta(minutes=int(cfg.get("ACCESS_TOKEN_TTL_MINUTES", 15))),
            refresh_ttl=timedelta(days=int(cfg.get("REFRESH_TOKEN_TTL_DAYS", 30))),
            max_active_sessions=int(cfg.get("MAX_ACTIVE_SESSIONS", 5)),
            verification_code_ttl=timedelta(hours=int(cfg.get("VERIFICATION_CODE_TTL_HOURS", 24))),
            reset_token_ttl=timedelta(hours=int(cfg.get("RESET_TOKEN_TTL_HOURS", 1))),
        )
