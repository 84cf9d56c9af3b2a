from .dto import AuthConfig
from .service import AuthService
from .shop_verifier import ShopVerifier

__all__ = ["AuthConfig", "AuthService", "ShopVerifier"]
