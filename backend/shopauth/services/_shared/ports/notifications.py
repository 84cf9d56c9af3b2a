from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Recipient:
    """Minimal addressing data handed to notification adapters."""

    user_id: int
    email: str
    full_name: str | None = None


class NotificationGateway(Protocol):
    """Outbound e-mail port. The auth service treats every call as best-effort."""

    def send_verification_code(self, recipient: Recipient, code: str) -> None: ...

    def send_password_reset(self, recipient: Recipient, token: str) -> None: ...

    def send_password_changed(self, recipient: Recipient) -> None: ...


@dataclass
class InMemoryNotificationGateway(NotificationGateway):
    """Record outbound messages for assertions in tests."""

    sent: list[tuple[str, Recipient, str | None]] = field(default_factory=list)

    def send_verification_code(self, recipient: Recipient, code: str) -> None:
        self.sent.append(("verification_code", recipient, code))

    def send_password_reset(self, recipient: Recipient, token: str) -> None:
        self.sent.append(("password_reset", recipient, token))

    def send_password_changed(self, recipient: Recipient) -> None:
        self.sent.append(("password_changed", recipient, None))

    def last(self, kind: str) -> tuple[Recipient, str | None] | None:
        """Return the most recent ``(recipient, payload)`` of ``kind``."""
        for sent_kind, recipient, payload in reversed(self.sent):
            if sent_kind == kind:
                return recipient, payload
        return None
