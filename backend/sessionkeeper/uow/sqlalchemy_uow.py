"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from sessionkeeper.core.extensions import db
from sessionkeeper.repositories import UserRepository
from sessionkeeper.uow.base import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Commits on clean exit, rolls back when the block raises. With
    ``read_only=True`` the block always ends in a rollback and ``commit`` is
    refused, which keeps lookups from holding a write transaction open.
    """

    def __init__(self, *, read_only: bool = False, session: Session | None = None) -> None:
        self.session = session or db.session
        self.read_only = read_only
        self.users = UserRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and not self.read_only:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        if self.read_only:
            raise RuntimeError("Read-only UnitOfWork does not allow commit().")
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
