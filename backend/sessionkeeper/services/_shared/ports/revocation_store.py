from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Protocol

from sessionkeeper.core.clock import Clock, utcnow


class RevocationStore(Protocol):
    """
    Abstraction for a revocation store for **access tokens**.

    Entries are keyed by token fingerprint and must disappear on their own once
    the token they describe would have expired anyway. Methods are idempotent.
    """

    def add(self, fingerprint: str, *, ttl_seconds: int) -> None: ...
    def contains(self, fingerprint: str) -> bool: ...


class InMemoryRevocationStore(RevocationStore):
    """In-memory revocation set with lazy expiry and an explicit sweep."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add(self, fingerprint: str, *, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[fingerprint] = self._clock() + timedelta(seconds=ttl_seconds)

    def contains(self, fingerprint: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(fingerprint)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._entries[fingerprint]
                return False
            return True

    def sweep_expired(self, *, now: datetime | None = None) -> int:
        """Remove entries whose TTL has elapsed. :returns: Number removed."""
        cutoff = now or self._clock()
        with self._lock:
            stale = [fp for fp, exp in self._entries.items() if exp <= cutoff]
            for fp in stale:
                del self._entries[fp]
            return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
