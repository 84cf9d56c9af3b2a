"""Generic repository base for SQLAlchemy 2.x.

This module centralizes persistence-only concerns shared by all repositories:
- Access to the session bound to the current Unit of Work.
- A visibility hook so soft-deleted rows never leak into lookups.
- Thin CRUD helpers (add/get/find_one/flush).
- No business logic, no commit/rollback: services own transactions.

Design decisions
----------------
* Repositories MUST remain thin and persistence-focused:
  - They never implement use cases or domain policies.
  - They never call commit/rollback; Services define the Unit of Work.
* Every query starts from :meth:`BaseRepository._visible`, so scoping rules
  (e.g. ``is_deleted = false``) are applied in exactly one place.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, and_, select
from sqlalchemy.orm import Session

from shopauth.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses MUST define:

    * ``model``: the SQLAlchemy mapped class.

    Subclasses MAY override:

    * ``_visible`` to restrict which rows are considered to exist.

    This class NEVER opens, commits or rolls back transactions.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``shopauth.core.extensions``.

        :param session: Session shared across the Unit of Work scope.
        :type session: :class:`sqlalchemy.orm.Session` | None
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the active SQLAlchemy session.

        :returns: Active session bound to the current Unit of Work.
        :rtype: :class:`sqlalchemy.orm.Session`
        """
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    # ------------------------------ Extensibility ----------------------------

    def _visible(self, stmt: Select[Any]) -> Select[Any]:
        """Restrict a select to rows callers are allowed to see.

        :param stmt: Base select over ``model``.
        :returns: The (possibly) filtered select.
        """
        return stmt

    def _select(self, *criteria: Any) -> Select[Any]:
        stmt = self._visible(select(self.model))
        if criteria:
            stmt = stmt.where(and_(*criteria))
        return stmt

    # --------------------------------- CRUD ----------------------------------

    def add(self, instance: E) -> E:
        """Stage a new entity for persistence and flush to materialize the PK.

        :param instance: New entity instance.
        :returns: The same instance after ``flush()``.
        """
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Retrieve a single visible entity by primary key.

        :param entity_id: Primary-key value.
        :returns: Entity or ``None``.
        """
        pk_attr = getattr(self.model, "id")
        result = self.session.execute(self._select(pk_attr == entity_id)).scalars().first()
        return cast(E | None, result)

    def find_one(self, *criteria: Any) -> E | None:
        """Return the first visible entity matching SQLAlchemy ``criteria``."""
        result = self.session.execute(self._select(*criteria)).scalars().first()
        return cast(E | None, result)

    def flush(self) -> None:
        """Flush pending changes to the database without committing."""
        self.session.flush()
