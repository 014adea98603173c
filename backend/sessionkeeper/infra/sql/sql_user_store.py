"""User store adapter over the SQLAlchemy unit of work."""

from __future__ import annotations

from datetime import datetime

from sessionkeeper.models.user import User
from sessionkeeper.services._shared.errors import NotFoundError
from sessionkeeper.services._shared.ports import UserRecord, UserStore
from sessionkeeper.uow import SQLAlchemyUnitOfWork


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        password_hash=user.password_hash,
        role=user.role,
        is_active=bool(user.is_active),
        mfa_enabled=bool(user.mfa_enabled),
        mfa_secret=user.mfa_secret,
        mfa_backup_codes=user.mfa_backup_codes,
        mfa_enabled_at=user.mfa_enabled_at,
        last_login_at=user.last_login_at,
    )


class SqlUserStore(UserStore):
    """
    :class:`UserStore` backed by the ``users`` table.

    Reads run in a read-only unit of work and are detached into
    :class:`UserRecord` snapshots before the transaction ends. Writes commit
    immediately.
    """

    def find_by_email(self, email: str) -> UserRecord | None:
        with SQLAlchemyUnitOfWork(read_only=True) as uow:
            user = uow.users.get_by_email(email)
            return _to_record(user) if user else None

    def find_by_id(self, user_id: str) -> UserRecord | None:
        with SQLAlchemyUnitOfWork(read_only=True) as uow:
            user = uow.users.get(user_id)
            return _to_record(user) if user else None

    def update_mfa_fields(
        self,
        user_id: str,
        *,
        enabled: bool,
        secret: str | None,
        backup_codes: str | None,
        enabled_at: datetime | None,
    ) -> None:
        with SQLAlchemyUnitOfWork() as uow:
            found = uow.users.update_mfa_fields(
                user_id,
                enabled=enabled,
                secret=secret,
                backup_codes=backup_codes,
                enabled_at=enabled_at,
            )
            if not found:
                raise NotFoundError("User", user_id)

    def touch_last_login(self, user_id: str, at: datetime) -> None:
        with SQLAlchemyUnitOfWork() as uow:
            if not uow.users.touch_last_login(user_id, at):
                raise NotFoundError("User", user_id)
