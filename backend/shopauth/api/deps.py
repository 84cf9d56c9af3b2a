"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from shopauth.core.errors import Unauthorized

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(slots=True)
class ClientContext:
    """Where a request comes from, as recorded on new sessions."""

    device: str
    ip: str


def client_context(device: str | None = None) -> ClientContext:
    """Return the caller's device (explicit value or ``User-Agent``) and address.

    ``request.remote_addr`` already honours ``X-Forwarded-For`` through ProxyFix.
    """

    ua = device or request.headers.get("User-Agent") or "unknown"
    return ClientContext(device=ua[:255], ip=request.remote_addr or "unknown")


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_user_id() -> int:
    """Return the authenticated user id from the verified access token."""

    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        raise Unauthorized("Invalid token subject", code="invalid_token") from None


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
