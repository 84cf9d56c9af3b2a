"""User repository: the credential store consulted by the auth core."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, false, or_

from shopauth.models.user import User, UserStatus

from .base import BaseRepository


def normalize_email(email: str) -> str:
    """Lowercase and trim an e-mail address for lookups."""
    return (email or "").strip().lower()


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Soft-deleted users are invisible to every lookup. This repository never
    compares passwords or decides eligibility; the auth service does.
    """

    model = User

    def _visible(self, stmt: Select[Any]) -> Select[Any]:
        return stmt.where(User.is_deleted == false())

    # ---------------------------- Lookup helpers ----------------------------

    def find_by_email(self, email: str, status: UserStatus | str | None = None) -> User | None:
        """Fetch a non-deleted user by normalized e-mail.

        :param email: Raw e-mail address.
        :type email: str
        :param status: Optional status the user must currently have.
        :type status: UserStatus | str | None
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        criteria = [User.email == normalize_email(email)]
        if status is not None:
            criteria.append(User.status == UserStatus(status).value)
        return self.find_one(*criteria)

    def find_by_id(self, user_id: int | str) -> User | None:
        """Fetch a non-deleted user by id.

        Session records carry the user id as a string; non-numeric ids simply
        match nothing.
        """
        try:
            pk = int(user_id)
        except (TypeError, ValueError):
            return None
        return self.get(pk)

    def find_pending_verification(self, email: str, code: str, now: datetime) -> User | None:
        """Return the unverified user owning ``code`` while it is still valid.

        A ``NULL`` expiry is treated as valid.
        """
        return self.find_one(
            User.email == normalize_email(email),
            User.verified == false(),
            User.status.in_(
                [UserStatus.PENDING.value, UserStatus.ACTIVE.value, UserStatus.INACTIVE.value]
            ),
            User.verification_code == code,
            or_(User.verification_code_expires.is_(None), User.verification_code_expires > now),
        )

    def find_for_resend(self, email: str) -> User | None:
        """Return the user eligible for a new verification code, if any."""
        return self.find_one(
            User.email == normalize_email(email),
            User.verified == false(),
            User.status.in_([UserStatus.PENDING.value, UserStatus.INACTIVE.value]),
        )

    def find_by_reset_digest(self, digest: str, now: datetime) -> User | None:
        """Return the non-suspended user holding an unexpired reset-token ``digest``."""
        return self.find_one(
            User.reset_password_token == digest,
            User.reset_password_expires > now,
            User.is_suspended == false(),
        )
