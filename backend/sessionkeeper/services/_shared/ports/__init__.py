"""
sessionkeeper.services._shared.ports
====================================

Collection of *ports* (hexagonal interfaces) that define the contracts
between the session lifecycle components and their collaborators.

These ports decouple the service layer from concrete implementations of
token signing, revocation, session storage, user lookup and IP reputation.

Modules
-------
- :mod:`token_provider`:
    Defines :class:`~.TokenProvider` for JWT signing and decoding.

- :mod:`revocation_store`:
    Defines :class:`~.RevocationStore`, a TTL-bound set of revoked access tokens.

- :mod:`session_store`:
    Defines :class:`~.SessionStore`, :class:`~.RotationResult`,
    :class:`~.SessionView` and :class:`~.RotationAttempt` for
    refresh-session persistence and compare-and-swap rotation.

- :mod:`user_store`:
    Defines :class:`~.UserStore` and :class:`~.UserRecord`.

- :mod:`ip_reputation`:
    Defines :class:`~.IpReputation`.

Design Notes
------------
Each port ships an in-memory implementation used by unit tests and by the
``memory`` session backend. Redis, SQL and JWT adapters live under
``sessionkeeper.infra``.
"""

from __future__ import annotations

from .ip_reputation import InMemoryIpReputation, IpReputation
from .revocation_store import InMemoryRevocationStore, RevocationStore
from .session_store import (
    InMemorySessionStore,
    RotationAttempt,
    RotationResult,
    SessionStore,
    SessionView,
)
from .token_provider import TokenProvider
from .user_store import InMemoryUserStore, UserRecord, UserStore

__all__ = [
    "TokenProvider",
    "RevocationStore",
    "InMemoryRevocationStore",
    "SessionStore",
    "SessionView",
    "RotationAttempt",
    "RotationResult",
    "InMemorySessionStore",
    "UserStore",
    "UserRecord",
    "InMemoryUserStore",
    "IpReputation",
    "InMemoryIpReputation",
]
