from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """
    Server-side record backing one refresh token.

    Records are created on login, may only be flipped to inactive afterwards
    and are never deleted or reactivated. ``expires_at`` is fixed at creation.

    :ivar session_id: Unique identifier (uuid hex).
    :ivar user_id: Owner user id (stringified).
    :ivar user_role: Role snapshot taken at login.
    :ivar shop_id: Shop snapshot taken at login.
    :ivar device: Client description (usually the User-Agent).
    :ivar ip: Client address at login.
    :ivar token: Opaque refresh token (unique).
    :ivar is_active: ``False`` once revoked or evicted.
    :ivar created_at: Creation instant (UTC).
    :ivar expires_at: Absolute expiry (UTC).
    """

    session_id: str
    user_id: str
    user_role: str
    shop_id: int | None
    device: str
    ip: str
    token: str
    is_active: bool
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_usable(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)


class SessionStore(Protocol):
    """
    Stateful store for session records.

    ``insert`` MUST count, evict and insert atomically per user; every
    deactivation MUST be idempotent. Adapters wrap transport failures in
    ``StoreUnavailable``.
    """

    def insert(self, record: SessionRecord, ceiling: int) -> list[SessionRecord]:
        """
        Persist ``record``, first deactivating the oldest active sessions of
        the same user so that at most ``ceiling`` remain active afterwards.

        :returns: The evicted records (as stored before eviction), oldest first.
        """

    def get_by_token(self, token: str) -> SessionRecord | None:
        """Fetch a record (active or not) by its refresh token."""

    def deactivate_token(self, token: str) -> bool:
        """:returns: ``True`` only when an active record was flipped."""

    def deactivate_user(self, user_id: str, keep_token: str | None = None) -> int:
        """Deactivate every active record of ``user_id`` except ``keep_token``.

        :returns: Number of records flipped.
        """

    def list_user(self, user_id: str, active_only: bool = True) -> list[SessionRecord]:
        """List a user's records, newest first."""

    def deactivate_expired(self, now: datetime) -> int:
        """Flip records still active past ``expires_at``. :returns: count flipped."""


class InMemorySessionStore(SessionStore):
    """
    In-process session store.

    .. note::
       A single lock makes every operation atomic. Suitable for tests and
       single-process deployments without ``REDIS_URL``.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, SessionRecord] = {}
        self._by_token: dict[str, str] = {}
        # Per user, session ids in insertion order (oldest first)
        self._by_user: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _deactivate(self, session_id: str) -> bool:
        current = self._by_id[session_id]
        if not current.is_active:
            return False
        self._by_id[session_id] = replace(current, is_active=False)
        return True

    def _active_ids(self, user_id: str) -> list[str]:
        return [sid for sid in self._by_user.get(user_id, []) if self._by_id[sid].is_active]

    # -------------------------- API ----------------------------

    def insert(self, record: SessionRecord, ceiling: int) -> list[SessionRecord]:
        with self._lock:
            if record.token in self._by_token:
                raise ValueError("Duplicate session token")
            active = self._active_ids(record.user_id)
            overflow = len(active) - ceiling + 1 if record.is_active else 0
            evicted: list[SessionRecord] = []
            for sid in active[: max(0, overflow)]:
                evicted.append(self._by_id[sid])
                self._deactivate(sid)

            self._by_id[record.session_id] = record
            self._by_token[record.token] = record.session_id
            self._by_user.setdefault(record.user_id, []).append(record.session_id)
            return evicted

    def get_by_token(self, token: str) -> SessionRecord | None:
        with self._lock:
            sid = self._by_token.get(token)
            return self._by_id.get(sid) if sid else None

    def deactivate_token(self, token: str) -> bool:
        with self._lock:
            sid = self._by_token.get(token)
            if sid is None:
                return False
            return self._deactivate(sid)

    def deactivate_user(self, user_id: str, keep_token: str | None = None) -> int:
        with self._lock:
            keep = self._by_token.get(keep_token) if keep_token else None
            flipped = 0
            for sid in self._active_ids(user_id):
                if sid != keep and self._deactivate(sid):
                    flipped += 1
            return flipped

    def list_user(self, user_id: str, active_only: bool = True) -> list[SessionRecord]:
        with self._lock:
            ids = self._active_ids(user_id) if active_only else self._by_user.get(user_id, [])
            return [self._by_id[sid] for sid in reversed(ids)]

    def deactivate_expired(self, now: datetime) -> int:
        with self._lock:
            stale = [
                r.session_id for r in self._by_id.values() if r.is_active and r.is_expired(now)
            ]
            return sum(1 for sid in stale if self._deactivate(sid))
