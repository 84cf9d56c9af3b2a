"""Shop model: the tenant a user belongs to."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shopauth.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin


class Shop(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Minimal tenant record.

    Only the verification flag is managed here: verifying the e-mail of a shop
    admin also marks the shop verified.

    Fields
    ------
    name : str
        Display name of the shop.
    verified : bool
        Whether the shop owner completed e-mail verification.
    verified_at : datetime | None
        When the shop was verified.
    verified_by : int | None
        User id of the admin whose verification verified the shop.
    """

    __tablename__ = "shops"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
