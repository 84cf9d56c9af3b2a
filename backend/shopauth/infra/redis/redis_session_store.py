# comments in English; reST docstrings
from __future__ import annotations

import functools
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar, cast

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from shopauth.services._shared.errors import StoreUnavailable
from shopauth.services._shared.ports import SessionRecord, SessionStore

F = TypeVar("F", bound=Callable[..., Any])


def _wrap_errors(fn: F) -> F:
    """Surface transport failures as ``StoreUnavailable``."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except RedisError as exc:
            raise StoreUnavailable() from exc

    return cast(F, wrapper)


def _s(value: bytes | str | None, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


@dataclass(slots=True)
class RedisSessionStore(SessionStore):
    """
    Redis-backed session store.

    Layout
    ------
    * ``sess:{id}``        hash with the record fields.
    * ``sess:tok:{token}`` session id owning a refresh token.
    * ``sess:u:{user}``    zset of *active* session ids, scored by insertion order.
    * ``sess:ua:{user}``   zset of all session ids, scored by insertion order.
    * ``sess:exp``         zset of *active* session ids, scored by expiry.
    * ``sess:seq``         monotonic insertion counter.

    Records are never deleted and carry no key TTL; inactive records stay
    readable so a revoked refresh token keeps failing as revoked.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(session_id: str) -> str:
        return f"sess:{session_id}"

    @staticmethod
    def _kt(token: str) -> str:
        return f"sess:tok:{token}"

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"sess:u:{user_id}"

    @staticmethod
    def _kua(user_id: str) -> str:
        return f"sess:ua:{user_id}"

    K_EXP = "sess:exp"
    K_SEQ = "sess:seq"

    @staticmethod
    def _to_mapping(record: SessionRecord) -> dict[str, str]:
        return {
            "session_id": record.session_id,
            "user_id": record.user_id,
            "user_role": record.user_role,
            "shop_id": "" if record.shop_id is None else str(record.shop_id),
            "device": record.device,
            "ip": record.ip,
            "token": record.token,
            "is_active": "1" if record.is_active else "0",
            "created_at": record.created_at.astimezone(UTC).isoformat(),
            "expires_at": record.expires_at.astimezone(UTC).isoformat(),
        }

    @staticmethod
    def _from_hash(h: dict[Any, Any]) -> SessionRecord:
        data = {_s(k): _s(v) for k, v in h.items()}
        shop = data.get("shop_id", "")
        return SessionRecord(
            session_id=data["session_id"],
            user_id=data["user_id"],
            user_role=data.get("user_role", ""),
            shop_id=int(shop) if shop else None,
            device=data.get("device", ""),
            ip=data.get("ip", ""),
            token=data["token"],
            is_active=data.get("is_active", "0") == "1",
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )

    def _load(self, session_id: str) -> SessionRecord | None:
        h = self.r.hgetall(self._k(session_id))
        return self._from_hash(h) if h else None

    @staticmethod
    def _flip(p: Any, session_id: str, user_id: str) -> None:
        """Queue the commands deactivating one session on a MULTI pipeline."""
        p.hset(RedisSessionStore._k(session_id), "is_active", "0")
        p.zrem(RedisSessionStore._ku(user_id), session_id)
        p.zrem(RedisSessionStore.K_EXP, session_id)

    # -------------------- API ------------------------

    @_wrap_errors
    def insert(self, record: SessionRecord, ceiling: int) -> list[SessionRecord]:
        """
        Insert ``record`` after evicting the oldest active sessions of its user.

        Uses WATCH/MULTI/EXEC on the user's active index so the count, the
        eviction and the insert commit together or are retried.
        """
        k_user = self._ku(record.user_id)
        k_tok = self._kt(record.token)
        seq = int(self.r.incr(self.K_SEQ))

        # Retry loop for optimistic locking in case of concurrent modifications
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_user, k_tok)
                    if p.exists(k_tok):
                        p.unwatch()
                        raise ValueError("Duplicate session token")

                    active_ids = [_s(m) for m in p.zrange(k_user, 0, -1)]
                    overflow = len(active_ids) - ceiling + 1 if record.is_active else 0
                    victims = active_ids[: max(0, overflow)]
                    evicted = [rec for rec in map(self._load, victims) if rec is not None]

                    p.multi()
                    for victim in victims:
                        self._flip(p, victim, record.user_id)
                    p.hset(self._k(record.session_id), mapping=self._to_mapping(record))
                    p.set(k_tok, record.session_id)
                    p.zadd(self._kua(record.user_id), {record.session_id: seq})
                    if record.is_active:
                        p.zadd(k_user, {record.session_id: seq})
                        p.zadd(self.K_EXP, {record.session_id: record.expires_at.timestamp()})
                    p.execute()
                return evicted
            except redis.WatchError:
                # Concurrent login for the same user; recount and retry
                continue

    @_wrap_errors
    def get_by_token(self, token: str) -> SessionRecord | None:
        sid = self.r.get(self._kt(token))
        if not sid:
            return None
        return self._load(_s(sid))

    @_wrap_errors
    def deactivate_token(self, token: str) -> bool:
        sid_b = self.r.get(self._kt(token))
        if not sid_b:
            # No session -> nothing to revoke
            return False
        sid = _s(sid_b)
        key = self._k(sid)

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    active, uid = p.hmget(key, "is_active", "user_id")
                    if _s(active, "0") != "1":
                        p.unwatch()
                        return False
                    p.multi()
                    self._flip(p, sid, _s(uid))
                    p.execute()
                return True
            except redis.WatchError:
                continue

    @_wrap_errors
    def deactivate_user(self, user_id: str, keep_token: str | None = None) -> int:
        k_user = self._ku(user_id)
        keep = _s(self.r.get(self._kt(keep_token))) if keep_token else ""

        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_user)
                    targets = [
                        sid for sid in (_s(m) for m in p.zrange(k_user, 0, -1)) if sid != keep
                    ]
                    if not targets:
                        p.unwatch()
                        return 0
                    p.multi()
                    for sid in targets:
                        self._flip(p, sid, user_id)
                    p.execute()
                return len(targets)
            except redis.WatchError:
                continue

    @_wrap_errors
    def list_user(self, user_id: str, active_only: bool = True) -> list[SessionRecord]:
        key = self._ku(user_id) if active_only else self._kua(user_id)
        ids = [_s(m) for m in self.r.zrevrange(key, 0, -1)]
        return [rec for rec in map(self._load, ids) if rec is not None]

    @_wrap_errors
    def deactivate_expired(self, now: datetime) -> int:
        flipped = 0
        for member in self.r.zrangebyscore(self.K_EXP, "-inf", now.timestamp()):
            sid = _s(member)
            rec = self._load(sid)
            if rec is None:
                self.r.zrem(self.K_EXP, sid)
                continue
            if self.deactivate_token(rec.token):
                flipped += 1
        return flipped
