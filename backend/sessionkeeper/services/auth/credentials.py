"""Password credential verification against the user store."""

from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

from sessionkeeper.services._shared.ports import UserRecord, UserStore

# Compared against when the email is unknown so every path pays one hash check.
_DUMMY_HASH = generate_password_hash("sessionkeeper-timing-equalizer")


def verify_credentials(store: UserStore, email: str, password: str) -> UserRecord | None:
    """
    Return the matching active user, or ``None``.

    Unknown email, wrong password and inactive account are indistinguishable
    to the caller, and all three run a password hash comparison.

    :param store: User store port.
    :param email: Login email (normalised by the store).
    :param password: Raw password candidate.
    """
    user = store.find_by_email(email)
    if user is None:
        check_password_hash(_DUMMY_HASH, password)
        return None
    if not check_password_hash(user.password_hash, password):
        return None
    if not user.is_active:
        return None
    return user
