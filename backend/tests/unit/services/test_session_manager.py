"""Tests for :class:`SessionManager` over the in-memory store."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest

from shopauth.services._shared.errors import SessionExpired, SessionNotFound
from shopauth.services._shared.ports import InMemorySessionStore
from shopauth.services.sessions import KeyedLock, SessionManager


class _Clock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> _Clock:
    return _Clock(datetime(2024, 1, 1, tzinfo=UTC))


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def manager(store, clock) -> SessionManager:
    seq = count(1)
    return SessionManager(
        store,
        max_active_sessions=5,
        refresh_ttl=timedelta(days=30),
        clock=clock,
        token_factory=lambda: f"rt-{next(seq)}",
    )


def _login(manager: SessionManager, user_id: int = 1, **kwargs):
    return manager.create_session(user_id=user_id, role="employee", shop_id=None, **kwargs)


def test_ceiling_must_be_positive(store):
    with pytest.raises(ValueError):
        SessionManager(store, max_active_sessions=0)


class TestCreate:
    def test_record_fields(self, manager, clock):
        rec = manager.create_session(
            user_id=7, role="admin", shop_id=3, device="Firefox", ip="10.0.0.1"
        )
        assert rec.user_id == "7"
        assert rec.user_role == "admin"
        assert rec.shop_id == 3
        assert rec.is_active is True
        assert rec.created_at == clock.now
        assert rec.expires_at == clock.now + timedelta(days=30)
        assert (rec.device, rec.ip) == ("Firefox", "10.0.0.1")

    def test_device_and_ip_default_to_unknown(self, manager):
        rec = _login(manager)
        assert (rec.device, rec.ip) == ("unknown", "unknown")

    def test_explicit_ttl(self, manager, clock):
        rec = _login(manager, ttl=timedelta(hours=1))
        assert rec.expires_at == clock.now + timedelta(hours=1)

    def test_default_tokens_are_unique(self, store):
        mgr = SessionManager(store)
        tokens = {_login(mgr).token for _ in range(20)}
        assert len(tokens) == 20
        assert all(len(t) >= 64 for t in tokens)


class TestCeiling:
    def test_sixth_login_evicts_oldest(self, manager, store):
        first, *rest = [_login(manager) for _ in range(5)]
        sixth = _login(manager)

        active = manager.list_active(1)
        assert len(active) == 5
        assert first.session_id not in {r.session_id for r in active}
        assert store.get_by_token(first.token).is_active is False
        assert sixth.session_id == active[0].session_id  # newest first

    def test_evicted_token_fails_as_revoked(self, manager):
        first = _login(manager)
        for _ in range(5):
            _login(manager)
        with pytest.raises(SessionExpired):
            manager.lookup_active(first.token)

    def test_ceiling_is_per_user(self, manager):
        for _ in range(5):
            _login(manager, user_id=1)
        _login(manager, user_id=2)
        assert len(manager.list_active(1)) == 5
        assert len(manager.list_active(2)) == 1

    def test_concurrent_logins_never_exceed_ceiling(self, store):
        mgr = SessionManager(store, max_active_sessions=5)
        barrier = threading.Barrier(12)

        def worker():
            barrier.wait()
            _login(mgr, user_id=42)

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(mgr.list_active(42)) == 5
        assert len(store.list_user("42", active_only=False)) == 12


class TestLookup:
    def test_unknown_or_empty(self, manager):
        with pytest.raises(SessionNotFound):
            manager.lookup_active("nope")
        with pytest.raises(SessionNotFound):
            manager.lookup_active("")

    def test_expired(self, manager, clock):
        rec = _login(manager)
        clock.advance(days=30)
        with pytest.raises(SessionExpired):
            manager.lookup_active(rec.token)

    def test_active(self, manager):
        rec = _login(manager)
        assert manager.lookup_active(rec.token) == rec


class TestRevoke:
    def test_revoke_is_idempotent(self, manager):
        rec = _login(manager)
        assert manager.revoke(rec.token) is True
        assert manager.revoke(rec.token) is False
        assert manager.revoke("unknown") is False
        assert manager.revoke("") is False

    def test_revoke_all(self, manager):
        for _ in range(3):
            _login(manager)
        other = _login(manager, user_id=2)

        assert manager.revoke_all(1) == 3
        assert manager.revoke_all(1) == 0
        assert manager.lookup_active(other.token) == other

    def test_revoke_all_except(self, manager):
        keep = _login(manager)
        _login(manager)
        _login(manager)

        assert manager.revoke_all_except(1, keep.token) == 2
        assert [r.session_id for r in manager.list_active(1)] == [keep.session_id]

    def test_records_are_never_reactivated(self, manager, store):
        rec = _login(manager)
        manager.revoke(rec.token)
        for _ in range(5):
            _login(manager)
        assert store.get_by_token(rec.token).is_active is False


class TestExpiry:
    def test_expire_stale(self, manager, clock, store):
        old = _login(manager, ttl=timedelta(hours=1))
        fresh = _login(manager)
        clock.advance(hours=2)

        assert manager.expire_stale() == 1
        assert manager.expire_stale() == 0
        assert store.get_by_token(old.token).is_active is False
        assert store.get_by_token(fresh.token).is_active is True

    def test_list_active_hides_expired(self, manager, clock):
        _login(manager, ttl=timedelta(minutes=5))
        clock.advance(minutes=10)
        assert manager.list_active(1) == []

    def test_with_frozen_time(self, store, freeze_time):
        with freeze_time("2024-03-01 10:00:00") as frozen:
            mgr = SessionManager(store, refresh_ttl=timedelta(days=1))
            rec = _login(mgr)
            frozen.tick(timedelta(days=1))
            with pytest.raises(SessionExpired):
                mgr.lookup_active(rec.token)


class TestKeyedLock:
    def test_entries_are_released(self):
        locks = KeyedLock()
        with locks.hold("a"):
            with locks.hold("b"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        inside: list[int] = []
        overlaps: list[int] = []

        def worker(n: int) -> None:
            with locks.hold("u"):
                inside.append(n)
                if len(inside) > 1:
                    overlaps.append(n)
                inside.pop()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []
        assert len(locks) == 0
