from __future__ import annotations

import logging

from shopauth.services._shared.ports import AuditEvent, AuditSink

AUDIT_LOGGER = "shopauth.audit"

log = logging.getLogger(AUDIT_LOGGER)


class LoggingAuditSink(AuditSink):
    """Emit each security event as one structured log line on ``shopauth.audit``."""

    def record(self, event: AuditEvent) -> None:
        log.info(
            "audit %s",
            event.event_type,
            extra={
                "event": event.event_type,
                "user_id": event.target_id,
                "role": event.role,
                "shop_id": event.shop_id,
                "details": {"actor_id": event.actor_id, **event.details},
            },
        )
