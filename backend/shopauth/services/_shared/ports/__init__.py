"""
shopauth.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) the auth service depends on.

Modules
-------
- :mod:`session_store`:
    :class:`~.SessionStore`, :class:`~.SessionRecord` and the in-process
    :class:`~.InMemorySessionStore`.

- :mod:`token_issuer`:
    :class:`~.TokenIssuer`, abstraction for access-token signing.

- :mod:`notifications`:
    :class:`~.NotificationGateway` (outbound e-mail) and a recording adapter.

- :mod:`audit`:
    :class:`~.AuditSink` (security events) and a recording adapter.

Design Notes
------------
Concrete network-facing adapters (Redis, PyJWT, logging) live under
``shopauth.infra``.
"""

from __future__ import annotations

from .audit import AuditEvent, AuditSink, InMemoryAuditSink
from .notifications import InMemoryNotificationGateway, NotificationGateway, Recipient
from .session_store import InMemorySessionStore, SessionRecord, SessionStore
from .token_issuer import TokenIssuer

__all__ = [
    "AuditEvent",
    "AuditSink",
    "InMemoryAuditSink",
    "InMemoryNotificationGateway",
    "NotificationGateway",
    "Recipient",
    "InMemorySessionStore",
    "SessionRecord",
    "SessionStore",
    "TokenIssuer",
]
