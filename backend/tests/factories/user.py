"""Factory Boy definition for :class:`shopauth.models.user.User`."""

from __future__ import annotations

import factory

from shopauth.models.user import User, UserRole, UserStatus
from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """
    Build persisted :class:`User` instances.

    Notes
    -----
    - Defaults to an active, fully verified employee without a shop.
    - Use :class:`PendingUserFactory` for accounts awaiting verification.
    """

    class Meta:
        model = User

    id = None  # let autoincrement handle it
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    full_name = factory.Sequence(lambda n: f"User {n}")
    role = UserRole.EMPLOYEE.value
    shop_id = None
    status = UserStatus.ACTIVE.value
    verified = True
    email_verified = True
    is_suspended = False
    is_deleted = False
    password_hash = factory.LazyFunction(lambda: "")  # set via postgen

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Set password using model setter (ensures hashing)."""
        obj.password = extracted or DEFAULT_PASSWORD


class PendingUserFactory(UserFactory):
    """Freshly registered account holding a verification code."""

    status = UserStatus.PENDING.value
    verified = False
    email_verified = False
    verification_code = "123456"
    verification_code_expires = None
