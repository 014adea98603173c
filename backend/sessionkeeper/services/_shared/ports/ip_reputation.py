from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Protocol

from sessionkeeper.core.clock import Clock, utcnow


class IpReputation(Protocol):
    """Port for the external IP reputation / ban service."""

    def is_banned(self, ip_address: str) -> bool: ...
    def track_failed_attempt(self, ip_address: str) -> None: ...


class InMemoryIpReputation(IpReputation):
    """
    Sliding-window failure counter.

    An address is banned once it accumulates ``threshold`` failures within
    ``window``. Failures older than the window are forgotten.
    """

    def __init__(
        self,
        *,
        threshold: int = 10,
        window: timedelta = timedelta(minutes=15),
        clock: Clock | None = None,
    ) -> None:
        self.threshold = threshold
        self.window = window
        self._clock = clock or utcnow
        self._failures: dict[str, deque[datetime]] = {}
        self._lock = threading.Lock()

    def _prune(self, ip_address: str, now: datetime) -> deque[datetime] | None:
        q = self._failures.get(ip_address)
        if q is None:
            return None
        while q and q[0] <= now - self.window:
            q.popleft()
        if not q:
            del self._failures[ip_address]
            return None
        return q

    def is_banned(self, ip_address: str) -> bool:
        with self._lock:
            q = self._prune(ip_address, self._clock())
            return q is not None and len(q) >= self.threshold

    def track_failed_attempt(self, ip_address: str) -> None:
        with self._lock:
            now = self._clock()
            q = self._prune(ip_address, now)
            if q is None:
                q = self._failures[ip_address] = deque()
            q.append(now)

    def __len__(self) -> int:
        return len(self._failures)
