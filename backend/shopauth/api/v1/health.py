"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shopauth.api.deps import json_response, timing
from shopauth.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and session store health."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"

    store_status = "memory"
    redis_client = current_app.extensions.get("redis_client")
    if redis_client is not None:
        try:
            redis_client.ping()
            store_status = "ok"
        except RedisError:  # pragma: no cover - needs a live outage
            current_app.logger.exception("healthcheck.redis_error")
            store_status = "fail"

    payload = {
        "status": "ok" if "fail" not in (db_status, store_status) else "degraded",
        "db": db_status,
        "session_store": store_status,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload)
