"""TTL-bound registry of revoked access tokens."""

from __future__ import annotations

import hashlib
import logging
import math

from sessionkeeper.core.clock import Clock, utcnow
from sessionkeeper.services._shared.ports import RevocationStore
from sessionkeeper.services.tokens.issuer import TokenIssuer

log = logging.getLogger(__name__)


def fingerprint(token: str) -> str:
    """SHA-256 hex digest of a raw token; the token itself is never stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationRegistry:
    """
    Deny individual access tokens before their natural expiry.

    Each entry lives exactly as long as the token it describes, so memory is
    bounded by the number of live revoked tokens.
    """

    def __init__(
        self,
        *,
        store: RevocationStore,
        issuer: TokenIssuer,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.clock = clock or utcnow

    def revoke(self, token: str) -> bool:
        """
        Revoke ``token`` until it would have expired.

        Already expired or undecodable tokens are ignored.

        :returns: ``True`` when an entry was written.
        """
        expires_at = self.issuer.expires_at(token)
        if expires_at is None:
            return False
        ttl = math.ceil((expires_at - self.clock()).total_seconds())
        if ttl <= 0:
            return False
        self.store.add(fingerprint(token), ttl_seconds=ttl)
        log.info("Access token revoked", extra={"event": "token_revoked"})
        return True

    def is_revoked(self, token: str) -> bool:
        return self.store.contains(fingerprint(token))
