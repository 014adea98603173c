"""User repository for persistence and credential lookup."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import select

from sessionkeeper.models.user import User
from sessionkeeper.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER handles JWT or session creation, only DB-level user state.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a user with the provided email exists."""
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    # ---------------------------- Mutations ----------------------------

    def update_mfa_fields(
        self,
        user_id: str,
        *,
        enabled: bool,
        secret: str | None,
        backup_codes: str | None,
        enabled_at: datetime | None,
    ) -> bool:
        """Overwrite the MFA columns of a user.

        :returns: ``False`` when the user does not exist.
        """
        user = self.get(user_id)
        if user is None:
            return False
        user.mfa_enabled = enabled
        user.mfa_secret = secret
        user.mfa_backup_codes = backup_codes
        user.mfa_enabled_at = enabled_at
        self.flush()
        return True

    def touch_last_login(self, user_id: str, at: datetime) -> bool:
        user = self.get(user_id)
        if user is None:
            return False
        user.last_login_at = at
        self.flush()
        return True
