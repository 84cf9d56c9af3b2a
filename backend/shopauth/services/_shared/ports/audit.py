from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """
    Security-relevant event.

    :ivar event_type: e.g. ``user_login``, ``failed_login_attempt``.
    :ivar actor_id: Who triggered the event (``None`` when anonymous).
    :ivar target_id: Affected user, if any.
    :ivar role: Role of the affected user.
    :ivar shop_id: Shop of the affected user.
    :ivar details: Free-form, log-safe details.
    """

    event_type: str
    actor_id: int | None = None
    target_id: int | None = None
    role: str | None = None
    shop_id: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    """Append-only sink for security events."""

    def record(self, event: AuditEvent) -> None: ...


@dataclass
class InMemoryAuditSink(AuditSink):
    """Keep events in a list for assertions in tests."""

    events: list[AuditEvent] = field(default_factory=list)

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def types(self) -> list[str]:
        return [e.event_type for e in self.events]
