from shopauth.models.shop import Shop
from shopauth.models.user import User, UserRole, UserStatus

__all__ = [
    "Shop",
    "User",
    "UserRole",
    "UserStatus",
]
