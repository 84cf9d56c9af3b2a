"""Build the auth core once per application and expose it to the HTTP and CLI layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import cast

from flask import Flask, current_app

from shopauth.core import extensions
from shopauth.infra.audit import LoggingAuditSink
from shopauth.infra.jwt import JWTTokenIssuer
from shopauth.infra.notifications import LoggingNotificationGateway
from shopauth.infra.redis import RedisSessionStore
from shopauth.services._shared.ports import (
    AuditSink,
    InMemorySessionStore,
    NotificationGateway,
    SessionStore,
)
from shopauth.services.auth import AuthConfig, AuthService, ShopVerifier
from shopauth.services.sessions import SessionManager

EXTENSION_KEY = "shopauth"


@dataclass(slots=True)
class AuthContainer:
    """Process-wide singletons of the auth core."""

    config: AuthConfig
    store: SessionStore
    sessions: SessionManager
    tokens: JWTTokenIssuer
    notifier: NotificationGateway
    audit: AuditSink
    auth: AuthService


def build_container(
    config: AuthConfig,
    *,
    store: SessionStore,
    notifier: NotificationGateway | None = None,
    audit: AuditSink | None = None,
) -> AuthContainer:
    """Wire the auth core from explicit collaborators (no ambient config)."""
    tokens = JWTTokenIssuer(
        secret=config.access_secret, ttl=config.access_ttl, algorithm=config.algorithm
    )
    sessions = SessionManager(
        store,
        max_active_sessions=config.max_active_sessions,
        refresh_ttl=config.refresh_ttl,
    )
    notifier = notifier or LoggingNotificationGateway()
    audit = audit or LoggingAuditSink()
    auth = AuthService(
        token_issuer=tokens,
        sessions=sessions,
        notifier=notifier,
        audit=audit,
        config=config,
        on_user_verified=ShopVerifier(),
    )
    return AuthContainer(
        config=config,
        store=store,
        sessions=sessions,
        tokens=tokens,
        notifier=notifier,
        audit=audit,
        auth=auth,
    )


def init_app(app: Flask) -> AuthContainer:
    """
    Read the Flask config once and register the container on ``app``.

    Sessions live in Redis when ``REDIS_URL`` is configured, otherwise in
    process memory.
    """
    config = AuthConfig.from_mapping(app.config)
    store: SessionStore
    if app.extensions.get("redis_client") is not None:
        store = RedisSessionStore(extensions.get_redis())
    else:
        store = InMemorySessionStore()
        app.logger.info("REDIS_URL not set; sessions are kept in process memory")
    container = build_container(config, store=store)
    app.extensions[EXTENSION_KEY] = container
    return container


def get_container() -> AuthContainer:
    return cast(AuthContainer, current_app.extensions[EXTENSION_KEY])


def get_auth_service() -> AuthService:
    return get_container().auth


def get_session_manager() -> SessionManager:
    return get_container().sessions
