"""Generic repository base for SQLAlchemy 2.x.

Repositories stay thin and persistence-focused:

- They never implement use cases or domain policies.
- They never call commit/rollback; the unit of work owns transactions.
- Updates never mass-assign: each repository exposes explicit methods.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from sqlalchemy.orm import Session

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Minimal CRUD helpers bound to a single session.

    :param session: Session shared with the enclosing unit of work.
    :type session: :class:`sqlalchemy.orm.Session`
    """

    model: type[E]

    def __init__(self, *, session: Session) -> None:
        self.session = session

    def get(self, entity_id: object) -> E | None:
        """Fetch an entity by primary key, or ``None``."""
        return self.session.get(self.model, entity_id)

    def add(self, entity: E) -> E:
        """Stage ``entity`` for insertion and flush so its id is populated."""
        self.session.add(entity)
        self.flush()
        return entity

    def flush(self) -> None:
        self.session.flush()
