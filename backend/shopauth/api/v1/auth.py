"""Authentication endpoints using the service layer.

The handlers only canonicalize input, call :class:`AuthService` and render the
result; every rule lives in the service.
"""

from __future__ import annotations

from flask import Blueprint, current_app, request

from shopauth.api.deps import client_context, current_user_id, json_response, require_auth, timing
from shopauth.core.extensions import limiter
from shopauth.schemas import (
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
from shopauth.services.auth.dto import (
    ChangePasswordIn,
    LoginIn,
    LogoutIn,
    RefreshIn,
    ResetPasswordIn,
    VerifyEmailIn,
)
from shopauth.services.container import get_auth_service

bp = Blueprint("auth", __name__)

login_schema = LoginSchema()
refresh_token_schema = RefreshTokenSchema()
email_schema = EmailSchema()
verify_email_schema = VerifyEmailSchema()
reset_password_schema = ResetPasswordSchema()
change_password_schema = ChangePasswordSchema()
user_schema = UserPublicSchema()
login_response_schema = LoginResponseSchema()
refresh_response_schema = RefreshResponseSchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and open a session."""

    data = login_schema.load(_payload())
    client = client_context(data.get("device"))
    result = get_auth_service().login(
        LoginIn(email=data["email"], password=data["password"], device=client.device, ip=client.ip)
    )
    return json_response({"data": login_response_schema.dump(result)})


@bp.post("/refresh")
@bp.post("/refresh-token")
@timing
def refresh():
    """Mint a new access token from a refresh token (also served as ``/refresh-token``)."""

    data = refresh_token_schema.load(_payload())
    result = get_auth_service().refresh(RefreshIn(refresh_token=data["refresh_token"]))
    return json_response({"data": refresh_response_schema.dump(result)})


@bp.post("/logout")
@timing
def logout():
    """Revoke the session bound to a refresh token (idempotent)."""

    data = refresh_token_schema.load(_payload())
    result = get_auth_service().logout(LogoutIn(refresh_token=data["refresh_token"]))
    return json_response({"data": {"revoked": result.revoked}})


@bp.post("/logout-all")
@require_auth
@timing
def logout_all():
    """Revoke every session of the authenticated user."""

    result = get_auth_service().logout_all(current_user_id())
    return json_response({"data": {"revoked_count": result.revoked_count}})


@bp.post("/logout-others")
@require_auth
@timing
def logout_others():
    """Revoke every session of the authenticated user except the caller's."""

    data = refresh_token_schema.load(_payload())
    result = get_auth_service().logout_others(current_user_id(), data["refresh_token"])
    return json_response({"data": {"revoked_count": result.revoked_count}})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user's public profile."""

    user = get_auth_service().get_profile(current_user_id())
    return json_response({"data": user_schema.dump(user)})


@bp.post("/verify-email")
@timing
def verify_email():
    """Consume an e-mail verification code."""

    data = verify_email_schema.load(_payload())
    user = get_auth_service().verify_email(VerifyEmailIn(email=data["email"], code=data["code"]))
    return json_response({"data": user_schema.dump(user)})


@bp.post("/resend-verification")
@timing
def resend_verification():
    """Send a new verification code (uniform response)."""

    data = email_schema.load(_payload())
    result = get_auth_service().resend_verification(data["email"])
    return json_response({"message": result.message})


@bp.post("/forgot-password")
@timing
def forgot_password():
    """Send a password reset link (uniform response)."""

    data = email_schema.load(_payload())
    result = get_auth_service().forgot_password(data["email"])
    return json_response({"message": result.message})


@bp.post("/reset-password")
@timing
def reset_password():
    """Set a new password from a reset token; signs out every device."""

    data = reset_password_schema.load(_payload())
    result = get_auth_service().reset_password(
        ResetPasswordIn(token=data["token"], new_password=data["new_password"])
    )
    return json_response({"data": {"user_id": result.user_id}})


@bp.post("/change-password")
@require_auth
@timing
def change_password():
    """Change the authenticated user's password; signs out every device."""

    data = change_password_schema.load(_payload())
    result = get_auth_service().change_password(
        ChangePasswordIn(
            user_id=current_user_id(),
            current_password=data["current_password"],
            new_password=data["new_password"],
        )
    )
    return json_response({"message": result.message})
