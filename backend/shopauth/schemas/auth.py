"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import EXCLUDE, Schema, fields, pre_load, validate

PASSWORD_RULES = validate.Length(min=8, max=128)


def _alias(data: Any, canonical: str, *aliases: str) -> Any:
    """Copy the first present alias onto ``canonical`` and drop the aliases."""
    if not isinstance(data, dict):
        return data
    data = dict(data)
    for alias in aliases:
        value = data.pop(alias, None)
        if canonical not in data and value is not None:
            data[canonical] = value
    return data


class _AuthInput(Schema):
    class Meta:
        unknown = EXCLUDE


class LoginSchema(_AuthInput):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    device = fields.String(load_default=None, validate=validate.Length(max=255))


class RefreshTokenSchema(_AuthInput):
    """Refresh / logout payload; accepts ``refreshToken`` as well."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1))

    @pre_load
    def _canonicalize(self, data: Any, **kwargs: Any) -> Any:
        return _alias(data, "refresh_token", "refreshToken")


class EmailSchema(_AuthInput):
    """Payload carrying only an e-mail (resend verification, forgot password)."""

    email = fields.Email(required=True, validate=validate.Length(max=254))


class VerifyEmailSchema(_AuthInput):
    """E-mail verification; accepts ``verificationCode`` as well as ``code``."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    code = fields.String(required=True, validate=validate.Regexp(r"^\d{6}$"))

    @pre_load
    def _canonicalize(self, data: Any, **kwargs: Any) -> Any:
        return _alias(data, "code", "verificationCode", "verification_code")


class ResetPasswordSchema(_AuthInput):
    token = fields.String(required=True, validate=validate.Length(min=1, max=256))
    new_password = fields.String(required=True, validate=PASSWORD_RULES)

    @pre_load
    def _canonicalize(self, data: Any, **kwargs: Any) -> Any:
        data = _alias(data, "new_password", "newPassword", "password")
        return _alias(data, "token", "resetToken")


class ChangePasswordSchema(_AuthInput):
    current_password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    new_password = fields.String(required=True, validate=PASSWORD_RULES)

    @pre_load
    def _canonicalize(self, data: Any, **kwargs: Any) -> Any:
        data = _alias(data, "current_password", "currentPassword")
        return _alias(data, "new_password", "newPassword")


# ------------------------------- Responses ---------------------------------


class UserPublicSchema(Schema):
    """Client-safe user representation."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    full_name = fields.String(allow_none=True)
    role = fields.String(required=True)
    shop_id = fields.Integer(allow_none=True)
    status = fields.String(required=True)
    verified = fields.Boolean(required=True)
    last_login_at = fields.DateTime(allow_none=True)


class LoginResponseSchema(Schema):
    user = fields.Nested(UserPublicSchema, required=True)
    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.Constant("bearer")


class RefreshResponseSchema(Schema):
    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.Constant("bearer")
