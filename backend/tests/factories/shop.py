"""Factory Boy definition for :class:`shopauth.models.shop.Shop`."""

from __future__ import annotations

import factory

from shopauth.models.shop import Shop
from tests.factories import BaseFactory


class ShopFactory(BaseFactory):
    """Build persisted, not yet verified :class:`Shop` instances."""

    class Meta:
        model = Shop

    id = None
    name = factory.Sequence(lambda n: f"Shop {n}")
    verified = False
