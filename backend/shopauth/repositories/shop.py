"""Shop repository."""

from __future__ import annotations

from shopauth.models.shop import Shop

from .base import BaseRepository


class ShopRepository(BaseRepository[Shop]):
    """Persistence-only repository for :class:`Shop`."""

    model = Shop
