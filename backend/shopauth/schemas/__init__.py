"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    ChangePasswordSchema,
    EmailSchema,
    LoginResponseSchema,
    LoginSchema,
    RefreshResponseSchema,
    RefreshTokenSchema,
    ResetPasswordSchema,
    UserPublicSchema,
    VerifyEmailSchema,
)

__all__ = [
    "ChangePasswordSchema",
    "EmailSchema",
    "LoginResponseSchema",
    "LoginSchema",
    "RefreshResponseSchema",
    "RefreshTokenSchema",
    "ResetPasswordSchema",
    "UserPublicSchema",
    "VerifyEmailSchema",
]
