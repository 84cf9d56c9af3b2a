"""Session lifecycle: creation under the per-user ceiling, lookup and revocation."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import uuid4

from shopauth.core.logger import mask_secret
from shopauth.models.base import utcnow
from shopauth.services._shared.errors import SessionExpired, SessionNotFound
from shopauth.services._shared.ports import SessionRecord, SessionStore

from .locks import KeyedLock

log = logging.getLogger(__name__)


def new_refresh_token() -> str:
    """Opaque, URL-safe refresh token (384 bits of entropy)."""
    return secrets.token_urlsafe(48)


class SessionManager:
    """
    Own every session record and enforce the active-session ceiling.

    :param store: Session store adapter.
    :param max_active_sessions: Ceiling of simultaneously active sessions per user.
    :param refresh_ttl: Fixed lifetime of a session.
    :param clock: Source of "now" (UTC).
    :param token_factory: Generator of refresh tokens.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        max_active_sessions: int = 5,
        refresh_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = new_refresh_token,
    ) -> None:
        if max_active_sessions < 1:
            raise ValueError("max_active_sessions must be at least 1")
        self.store = store
        self.max_active_sessions = max_active_sessions
        self.refresh_ttl = refresh_ttl
        self._clock = clock
        self._token_factory = token_factory
        self._user_locks = KeyedLock()

    # ------------------------------ Creation ---------------------------------

    def create_session(
        self,
        *,
        user_id: int | str,
        role: str,
        shop_id: int | None,
        device: str | None = None,
        ip: str | None = None,
        ttl: timedelta | None = None,
    ) -> SessionRecord:
        """
        Create an active session, evicting the oldest ones when at the ceiling.

        Counting, eviction and insertion run as one critical section per user:
        the store's insert is atomic and a per-user lock serializes concurrent
        logins of the same user within this process.

        :raises StoreUnavailable: When the store cannot be reached.
        """
        now = self._clock()
        record = SessionRecord(
            session_id=uuid4().hex,
            user_id=str(user_id),
            user_role=role,
            shop_id=shop_id,
            device=device or "unknown",
            ip=ip or "unknown",
            token=self._token_factory(),
            is_active=True,
            created_at=now,
            expires_at=now + (ttl or self.refresh_ttl),
        )

        with self._user_locks.hold(record.user_id):
            evicted = self.store.insert(record, self.max_active_sessions)

        if evicted:
            log.warning(
                "Session ceiling reached for user %s; evicted %s",
                record.user_id,
                ", ".join(e.session_id for e in evicted),
                extra={"event": "session_evicted", "user_id": record.user_id},
            )
        log.info(
            "Session %s created for user %s",
            record.session_id,
            record.user_id,
            extra={
                "event": "session_created",
                "user_id": record.user_id,
                "session_id": record.session_id,
            },
        )
        return record

    # ------------------------------- Lookup ----------------------------------

    def lookup_active(self, token: str) -> SessionRecord:
        """
        Resolve a refresh token to its active, unexpired session.

        :raises SessionNotFound: Unknown token.
        :raises SessionExpired: Revoked or past ``expires_at``.
        """
        if not token:
            raise SessionNotFound()
        record = self.store.get_by_token(token)
        if record is None:
            raise SessionNotFound()
        if not record.is_usable(self._clock()):
            raise SessionExpired()
        return record

    def list_active(self, user_id: int | str) -> list[SessionRecord]:
        """Active, unexpired sessions of ``user_id``, newest first."""
        now = self._clock()
        return [r for r in self.store.list_user(str(user_id)) if not r.is_expired(now)]

    # ------------------------------ Revocation -------------------------------

    def revoke(self, token: str) -> bool:
        """
        Deactivate the session owning ``token``.

        :returns: ``True`` the first time, ``False`` when it was already
            inactive or never existed.
        """
        if not token:
            return False
        flipped = self.store.deactivate_token(token)
        log.info(
            "Revoke session token %s: %s",
            mask_secret(token),
            "revoked" if flipped else "nothing to revoke",
            extra={"event": "session_revoked"},
        )
        return flipped

    def revoke_all(self, user_id: int | str) -> int:
        """Deactivate every active session of ``user_id``. :returns: count."""
        count = self.store.deactivate_user(str(user_id))
        log.info(
            "Revoked %d session(s) for user %s",
            count,
            user_id,
            extra={"event": "sessions_revoked_all", "user_id": str(user_id)},
        )
        return count

    def revoke_all_except(self, user_id: int | str, keep_token: str) -> int:
        """Deactivate every active session of ``user_id`` but the one owning ``keep_token``."""
        count = self.store.deactivate_user(str(user_id), keep_token=keep_token)
        log.info(
            "Revoked %d other session(s) for user %s",
            count,
            user_id,
            extra={"event": "sessions_revoked_others", "user_id": str(user_id)},
        )
        return count

    def expire_stale(self, now: datetime | None = None) -> int:
        """Flip sessions still marked active past their expiry. :returns: count."""
        count = self.store.deactivate_expired(now or self._clock())
        if count:
            log.info("Expired %d stale session(s)", count, extra={"event": "sessions_expired"})
        return count
