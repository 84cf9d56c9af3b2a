from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from shopauth.models.base import utcnow
from shopauth.services._shared.errors import SigningError, TokenExpired, TokenInvalid
from shopauth.services._shared.ports import TokenIssuer

_REGISTERED = ("sub", "iat", "nbf", "exp", "jti", "type")


@dataclass(slots=True)
class JWTTokenIssuer(TokenIssuer):
    """
    PyJWT adapter signing HS256 access tokens.

    Tokens carry ``sub`` (stringified ``uid``) and ``type="access"`` so the
    Flask-JWT-Extended request guard, configured with the same secret and
    algorithm, accepts them.

    :param secret: Signing secret. ``None`` or empty makes :meth:`mint` fail.
    :param ttl: Default lifetime.
    :param algorithm: JWS algorithm.
    :param clock: Source of "now" (UTC).
    """

    secret: str | None
    ttl: timedelta = timedelta(minutes=15)
    algorithm: str = "HS256"
    clock: Callable[[], datetime] = field(default=utcnow)

    def mint(self, claims: dict[str, Any], ttl: timedelta | None = None) -> str:
        if not self.secret:
            raise SigningError()
        if claims.get("uid") is None:
            raise ValueError("Access token claims require 'uid'.")

        now = self.clock()
        payload = {k: v for k, v in claims.items() if k not in _REGISTERED}
        payload.update(
            {
                "sub": str(claims["uid"]),
                "iat": now,
                "nbf": now,
                "exp": now + (ttl or self.ttl),
                "jti": uuid4().hex,
                "type": "access",
            }
        )
        try:
            return jwt.encode(payload, self.secret, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise SigningError(f"Unable to sign access token: {exc}") from exc

    def verify(self, token: str) -> dict[str, Any]:
        if not self.secret:
            raise TokenInvalid()
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub", "jti"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except jwt.PyJWTError as exc:
            raise TokenInvalid() from exc

        if claims.get("type") != "access":
            raise TokenInvalid()
        return claims
