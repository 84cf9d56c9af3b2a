"""Tests for the read-only and read-write units of work."""

from __future__ import annotations

import pytest

from shopauth.models.user import User
from shopauth.uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork
from tests.factories.user import UserFactory


def test_readonly_blocks_flush(session):
    user = UserFactory()
    session.commit()

    with pytest.raises(RuntimeError):
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            found = uow.users.find_by_id(user.id)
            found.full_name = "Changed"
            uow.session.flush()

    assert session.get(User, user.id).full_name != "Changed"


def test_readonly_commit_is_disallowed(session):
    with SQLAlchemyReadOnlyUnitOfWork() as uow:
        with pytest.raises(RuntimeError):
            uow.commit()


def test_readonly_discards_changes_on_exit(session):
    user = UserFactory(full_name="Original")
    session.commit()

    with SQLAlchemyReadOnlyUnitOfWork() as uow:
        uow.users.find_by_id(user.id).full_name = "Changed"

    assert session.get(User, user.id).full_name == "Original"


def test_writer_commits_on_clean_exit(session):
    user = UserFactory(full_name="Original")
    session.commit()

    with SQLAlchemyUnitOfWork() as uow:
        uow.users.find_by_id(user.id).full_name = "Committed"

    session.expire_all()
    assert session.get(User, user.id).full_name == "Committed"


def test_writer_rolls_back_on_error(session):
    user = UserFactory(full_name="Original")
    session.commit()

    with pytest.raises(ValueError):
        with SQLAlchemyUnitOfWork() as uow:
            uow.users.find_by_id(user.id).full_name = "Lost"
            raise ValueError("boom")

    assert session.get(User, user.id).full_name == "Original"
