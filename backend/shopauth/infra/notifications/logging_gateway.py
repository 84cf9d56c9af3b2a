"""Notification adapter that writes outbound e-mails to the log.

Used until a mail transport is wired in. Secrets (codes, reset tokens) are
masked so log sinks never hold a usable credential.
"""

from __future__ import annotations

import logging

from shopauth.core.logger import mask_secret
from shopauth.services._shared.ports import NotificationGateway, Recipient

log = logging.getLogger("shopauth.notifications")


class LoggingNotificationGateway(NotificationGateway):
    def send_verification_code(self, recipient: Recipient, code: str) -> None:
        log.info(
            "Verification code issued for %s",
            recipient.email,
            extra={"event": "email_verification_code", "user_id": recipient.user_id},
        )

    def send_password_reset(self, recipient: Recipient, token: str) -> None:
        log.info(
            "Password reset link issued for %s (token %s)",
            recipient.email,
            mask_secret(token),
            extra={"event": "email_password_reset", "user_id": recipient.user_id},
        )

    def send_password_changed(self, recipient: Recipient) -> None:
        log.info(
            "Password change notice for %s",
            recipient.email,
            extra={"event": "email_password_changed", "user_id": recipient.user_id},
        )
