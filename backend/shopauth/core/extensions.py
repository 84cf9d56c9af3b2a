"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from jwt import InvalidTokenError
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData
from werkzeug.middleware.proxy_fix import ProxyFix

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)
redis_client: redis.Redis | None = None


def _configure_jwt_guard(app: Flask) -> None:
    """Align Flask-JWT-Extended with the access-token issuer settings.

    The request guard only *verifies* tokens; issuance happens in the token
    issuer, which signs with the same secret and algorithm. Without
    ``JWT_ACCESS_SECRET`` the guard rejects every token instead of falling
    back to ``SECRET_KEY``.
    """
    secret = app.config.get("JWT_ACCESS_SECRET") or None
    app.config["JWT_SECRET_KEY"] = secret
    if secret is None:
        logging.getLogger(__name__).warning(
            "JWT_ACCESS_SECRET is not set: access tokens can be neither issued nor accepted",
            extra={"event": "jwt_secret_missing"},
        )
    # ``JWT_ALGORITHM`` is shared verbatim with Flask-JWT-Extended.
    app.config.setdefault("JWT_ALGORITHM", "HS256")
    app.config.setdefault("JWT_TOKEN_LOCATION", ["headers"])
    app.config.setdefault(
        "JWT_ACCESS_TOKEN_EXPIRES",
        timedelta(minutes=int(app.config.get("ACCESS_TOKEN_TTL_MINUTES", 15))),
    )


@jwt.decode_key_loader
def _access_decode_key(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]) -> str:
    secret = current_app.config.get("JWT_ACCESS_SECRET")
    if not secret:
        raise InvalidTokenError("No access-token secret configured")
    return secret


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT guard, rate limiting, CORS and Redis.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`shopauth.models` package to ensure SQLAlchemy metadata is ready
        for migrations.
    """
    if app.config.get("USE_PROXYFIX", True):
        # Trust a single hop so ``request.remote_addr`` reflects the client ip.
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from shopauth import models as _models  # noqa: F401

    migrate.init_app(app, db)

    _configure_jwt_guard(app)
    jwt.init_app(app)

    app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)
    limiter.init_app(app)

    raw_origins = app.config.get("CORS_ORIGINS", "") or ""
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    wildcard = len(origins) == 0 or origins == ["*"]
    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )

    global redis_client
    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        redis_client = None
        app.extensions.pop("redis_client", None)
        return

    redis_client = redis.Redis.from_url(redis_url)
    try:
        redis_client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    app.extensions["redis_client"] = redis_client


def get_redis() -> redis.Redis:
    """Return the initialized Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Call init_app() first.")
    return redis_client
