"""Repository layer (persistence only, no commits)."""

from .base import BaseRepository
from .shop import ShopRepository
from .user import UserRepository, normalize_email

__all__ = ["BaseRepository", "ShopRepository", "UserRepository", "normalize_email"]
