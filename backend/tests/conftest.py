"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases.

Services own their transactions: a failing use case rolls the session back.
Tests that build rows with factories and then expect a service error must
``session.commit()`` first so the rows survive that rollback (the commit only
releases the per-test SAVEPOINT; the outer transaction is still discarded).
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from shopauth.core.extensions import db as _db  # Flask-SQLAlchemy instance
from shopauth.factory import create_app  # application factory under test


class TestConfig:
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Sessions live in process memory (no ``REDIS_URL``).
    - Rate limiting is off so login tests can repeat freely.
    """

    TESTING = True
    DEBUG = False
    SECRET_KEY = "testing-secret-key"
    JWT_ACCESS_SECRET = "testing-access-secret-with-enough-entropy"
    JWT_ALGORITHM = "HS256"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    CORS_ORIGINS = "http://localhost:5173"
    LOG_LEVEL = "WARNING"
    MAX_ACTIVE_SESSIONS = 5


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(app, db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Scoped session bound to the shared connection; automatically rolled
        back after each test.

    Notes
    -----
    The fixture mirrors the SQLAlchemy 2.0 pattern for transactional tests: it
    begins a top-level transaction, starts a SAVEPOINT per test, and reinstalls
    the SAVEPOINT whenever SQLAlchemy ends one.
    """
    # 0) Fresh app context per test so ``g`` does not leak between tests
    ctx = app.app_context()
    ctx.push()

    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(bind=connection, future=True)
    scoped = scoped_session(SessionFactory)

    # 3) SAVEPOINT per test
    nested = connection.begin_nested()

    # 4) Re-create SAVEPOINT when the previous nested transaction ends
    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        if trans.nested and not trans._parent.nested:
            nonlocal nested
            nested = connection.begin_nested()

    # 5) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()
        ctx.pop()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield


# -- Auth core wiring ------------------------------------------------------------
@pytest.fixture()
def container(app, monkeypatch):
    """Return the app's auth container with an empty session store and outbox.

    The app outlives each test but user ids are reused once the database rolls
    back, so sessions and notifications are reset per test.
    """
    from shopauth.services._shared.ports import (
        InMemoryAuditSink,
        InMemoryNotificationGateway,
        InMemorySessionStore,
    )
    from shopauth.services.container import get_container

    with app.app_context():
        c = get_container()
    store = InMemorySessionStore()
    notifier = InMemoryNotificationGateway()
    audit = InMemoryAuditSink()
    monkeypatch.setattr(c.sessions, "store", store)
    monkeypatch.setattr(c, "store", store)
    monkeypatch.setattr(c.auth, "notifier", notifier)
    monkeypatch.setattr(c, "notifier", notifier)
    monkeypatch.setattr(c.auth, "audit", audit)
    monkeypatch.setattr(c, "audit", audit)
    return c


@pytest.fixture()
def client(app):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture()
def freeze_time() -> Callable[[str | None], Any]:
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_with_frozen_time(freeze_time):
    ...     with freeze_time("2024-01-01"):
    ...         ...
    """

    from freezegun import freeze_time as _freeze_time

    def _factory(target: str | None = None) -> Any:
        return _freeze_time(target or "2024-01-01")

    return _factory
