import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from sessionkeeper.services._shared.errors import StoreUnavailableError


class RedisIpReputation:
    """
    Fixed-window failed-login counter per client address.

    The first failure opens a window of ``window_seconds``; the address is
    banned while the counter is at or above ``threshold``.
    """

    def __init__(self, r: redis.Redis, *, threshold: int = 10, window_seconds: int = 900):
        self.r = r
        self.threshold = threshold
        self.window_seconds = window_seconds

    @staticmethod
    def _k(ip_address: str) -> str:
        return f"ipfail:{ip_address}"

    def is_banned(self, ip_address: str) -> bool:
        try:
            raw = self.r.get(self._k(ip_address))
        except RedisError as exc:
            raise StoreUnavailableError() from exc
        return raw is not None and int(raw) >= self.threshold

    def track_failed_attempt(self, ip_address: str) -> None:
        key = self._k(ip_address)
        try:
            if int(self.r.incr(key)) == 1:
                self.r.expire(key, self.window_seconds)
        except RedisError as exc:
            raise StoreUnavailableError() from exc
