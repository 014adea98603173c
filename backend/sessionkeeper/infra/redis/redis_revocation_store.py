from typing import cast

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from sessionkeeper.services._shared.errors import StoreUnavailableError


class RedisRevocationStore:
    """
    Revocation set for **access tokens** keyed by token fingerprint.

    Entries carry a native TTL equal to the remaining token lifetime, so the
    set never outgrows the population of live tokens.
    """

    def __init__(self, r: redis.Redis):
        self.r = r

    @staticmethod
    def _k(fingerprint: str) -> str:
        return f"revoked:at:{fingerprint}"

    def contains(self, fingerprint: str) -> bool:
        try:
            return cast(int, self.r.exists(self._k(fingerprint))) == 1
        except RedisError as exc:
            raise StoreUnavailableError() from exc

    def add(self, fingerprint: str, *, ttl_seconds: int) -> None:
        # store a small marker with TTL; idempotent
        try:
            self.r.set(self._k(fingerprint), "1", ex=max(1, int(ttl_seconds)))
        except RedisError as exc:
            raise StoreUnavailableError() from exc
