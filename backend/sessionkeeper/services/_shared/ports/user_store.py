from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol
from uuid import uuid4

from werkzeug.security import generate_password_hash

from sessionkeeper.services._shared.errors import NotFoundError


@dataclass(frozen=True, slots=True)
class UserRecord:
    """
    Snapshot of the user fields the session lifecycle depends on.

    ``mfa_secret`` and ``mfa_backup_codes`` hold sealed (encrypted) values,
    never plaintext.
    """

    id: str
    email: str
    password_hash: str
    role: str = "user"
    is_active: bool = True
    mfa_enabled: bool = False
    mfa_secret: str | None = None
    mfa_backup_codes: str | None = None
    mfa_enabled_at: datetime | None = None
    last_login_at: datetime | None = None


class UserStore(Protocol):
    """
    Port over the external user credential store.

    Read-only except for the MFA fields and the last login timestamp.
    """

    def find_by_email(self, email: str) -> UserRecord | None: ...

    def find_by_id(self, user_id: str) -> UserRecord | None: ...

    def update_mfa_fields(
        self,
        user_id: str,
        *,
        enabled: bool,
        secret: str | None,
        backup_codes: str | None,
        enabled_at: datetime | None,
    ) -> None:
        """Replace every MFA field at once. :raises NotFoundError: unknown user."""

    def touch_last_login(self, user_id: str, at: datetime) -> None: ...


class InMemoryUserStore(UserStore):
    """Dictionary-backed user store for unit tests and the ``memory`` backend."""

    def __init__(self) -> None:
        self._by_id: dict[str, UserRecord] = {}
        self._lock = threading.Lock()

    def add(
        self,
        email: str,
        password: str,
        *,
        role: str = "user",
        is_active: bool = True,
        user_id: str | None = None,
    ) -> UserRecord:
        """Register a user with a freshly hashed password."""
        record = UserRecord(
            id=user_id or str(uuid4()),
            email=email.strip().lower(),
            password_hash=generate_password_hash(password),
            role=role,
            is_active=is_active,
        )
        with self._lock:
            self._by_id[record.id] = record
        return record

    def set_active(self, user_id: str, is_active: bool) -> None:
        with self._lock:
            self._by_id[user_id] = replace(self._require(user_id), is_active=is_active)

    def find_by_email(self, email: str) -> UserRecord | None:
        needle = email.strip().lower()
        with self._lock:
            return next((u for u in self._by_id.values() if u.email == needle), None)

    def find_by_id(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self._by_id.get(user_id)

    def update_mfa_fields(
        self,
        user_id: str,
        *,
        enabled: bool,
        secret: str | None,
        backup_codes: str | None,
        enabled_at: datetime | None,
    ) -> None:
        with self._lock:
            self._by_id[user_id] = replace(
                self._require(user_id),
                mfa_enabled=enabled,
                mfa_secret=secret,
                mfa_backup_codes=backup_codes,
                mfa_enabled_at=enabled_at,
            )

    def touch_last_login(self, user_id: str, at: datetime) -> None:
        with self._lock:
            self._by_id[user_id] = replace(self._require(user_id), last_login_at=at)

    def _require(self, user_id: str) -> UserRecord:
        user = self._by_id.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
