from __future__ import annotations

import logging

from shopauth.models.base import utcnow
from shopauth.services._shared.base import BaseService
from shopauth.services._shared.errors import NotFoundError
from shopauth.services.auth.dto import UserPublicOut

log = logging.getLogger(__name__)


class ShopVerifier(BaseService):
    """
    ``on_user_verified`` callback: a shop is verified once its admin verifies
    their e-mail. Idempotent; an already verified shop is left untouched.
    """

    def __call__(self, user: UserPublicOut) -> bool:
        """
        :param user: The freshly verified admin.
        :returns: ``True`` when the shop flag was flipped.
        :raises NotFoundError: The admin's shop does not exist.
        """
        if user.shop_id is None:
            return False
        with self.rw_uow() as uow:
            shop = uow.shops.get(user.shop_id)
            if shop is None:
                raise NotFoundError("Shop", user.shop_id)
            if shop.verified:
                return False
            shop.verified = True
            shop.verified_at = utcnow()
            shop.verified_by = user.id
        log.info(
            "Shop %s verified by admin %s",
            user.shop_id,
            user.id,
            extra={"event": "shop_verified", "user_id": user.id, "shop_id": user.shop_id},
        )
        return True
