"""User model: the credential record consulted by the authentication core."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import check_password_hash, generate_password_hash

from shopauth.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin


class UserRole(str, Enum):
    """Roles available in a multi-shop deployment."""

    SUPER_ADMIN = "superAdmin"
    ADMIN = "admin"
    EMPLOYEE = "employee"


class UserStatus(str, Enum):
    """Account lifecycle status (``pending`` until the e-mail is verified)."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash compared against when no account matches, to keep login timing uniform."""
    return generate_password_hash("not-a-real-password")


def check_dummy_password(raw: str) -> bool:
    """Spend one password comparison without a real record. Always ``False``."""
    check_password_hash(dummy_password_hash(), raw or "")
    return False


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Credential record for a person operating a shop.

    Fields
    ------
    email : str
        Login email. Stored normalized (lowercase, trimmed).
    password_hash : str
        Hashed password (write-only setter via ``password``).
    full_name : str | None
        Optional display name.
    role : str
        One of :class:`UserRole` values.
    shop_id : int | None
        Owning shop; ``None`` for super admins.
    status : str
        One of :class:`UserStatus` values.
    verified, email_verified : bool
        Redundant verification flags, both required to log in.
    is_suspended, is_deleted : bool
        Independent of ``status``. Deleted users are invisible to every lookup.
    verification_code, verification_code_expires
        Pending 6-digit e-mail verification code (single use).
    reset_password_token, reset_password_expires
        SHA-256 digest of the pending reset token (single use).
    last_login_at, verified_at : datetime | None
        Audit timestamps.
    """

    __tablename__ = "users"

    # Columns
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.EMPLOYEE.value)
    shop_id: Mapped[int | None] = mapped_column(
        ForeignKey("shops.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserStatus.PENDING.value
    )
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspension_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    verification_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    verification_code_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reset_password_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reset_password_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Constraints & indexes
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_status", "status"),
        Index("ix_users_shop_id_role", "shop_id", "role"),
        Index("ix_users_reset_password_token", "reset_password_token"),
    )

    # -------------------- Password API --------------------
    @property
    def password(self) -> Any:  # pragma: no cover - explicit write-only contract
        """
        Disallow reading passwords.

        :raises AttributeError: Always, to ensure password is write-only.
        """
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        Hash and set the password.

        :param raw: Plain text password to hash.
        :type raw: str
        """
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        """
        Verify a password against the stored hash.

        :param raw: Plain text password candidate.
        :type raw: str
        :returns: ``True`` if it matches; otherwise ``False``.
        :rtype: bool
        """
        if not self.password_hash:
            return False
        return bool(check_password_hash(self.password_hash, raw or ""))

    # -------------------- State transitions --------------------
    @property
    def is_fully_verified(self) -> bool:
        """Both verification flags are required; they are checked independently."""
        return bool(self.verified) and bool(self.email_verified)

    def issue_verification_code(self, code: str, expires_at: datetime) -> None:
        """Replace any pending verification code."""
        self.verification_code = code
        self.verification_code_expires = expires_at

    def mark_verified(self, now: datetime) -> None:
        """Transition ``pending`` → ``active`` and consume the verification code."""
        self.verified = True
        self.email_verified = True
        self.verified_at = now
        self.status = UserStatus.ACTIVE.value
        self.verification_code = None
        self.verification_code_expires = None

    def set_reset_token(self, digest: str, expires_at: datetime) -> None:
        """Store a reset-token digest; any previous token stops matching."""
        self.reset_password_token = digest
        self.reset_password_expires = expires_at

    def clear_reset_token(self) -> None:
        self.reset_password_token = None
        self.reset_password_expires = None

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = value.strip().lower()
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("role")
    def _validate_role(self, key: str, value: str | UserRole) -> str:
        try:
            return UserRole(value).value
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None

    @validates("status")
    def _validate_status(self, key: str, value: str | UserStatus) -> str:
        try:
            return UserStatus(value).value
        except ValueError:
            raise ValueError(f"Unknown status: {value!r}") from None
