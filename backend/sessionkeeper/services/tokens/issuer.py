"""Access token issuing and local verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import ExpiredSignatureError, ImmatureSignatureError, InvalidTokenError

from sessionkeeper.core.clock import from_ts
from sessionkeeper.services._shared.ports import TokenProvider

log = logging.getLogger(__name__)


class TokenStatus(str, Enum):
    """Classification of a presented access token."""

    VALID = "valid-signature"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    NOT_YET_VALID = "not-yet-valid"


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """Claims embedded in every access token."""

    subject: str
    email: str
    role: str
    session_id: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AccessTokenClaims:
        return cls(
            subject=str(payload["sub"]),
            email=str(payload.get("email", "")),
            role=str(payload.get("role", "")),
            session_id=str(payload.get("sid", "")),
            issued_at=from_ts(payload["iat"]),
            expires_at=from_ts(payload["exp"]),
        )


@dataclass(frozen=True, slots=True)
class TokenVerification:
    """
    Result of :meth:`TokenIssuer.verify`.

    ``claims`` is populated only when ``valid`` is ``True``.
    """

    valid: bool
    status: TokenStatus
    claims: AccessTokenClaims | None = None


class TokenIssuer:
    """
    Mint and verify short-lived signed access tokens.

    Verification is pure and local: signature, expiry and not-before are
    checked against the configured key; revocation and session liveness are
    layered on top by the caller.

    :param provider: Signing adapter (Flask-JWT-Extended in production).
    :param access_ttl: Lifetime of every issued token.
    """

    def __init__(self, *, provider: TokenProvider, access_ttl: timedelta) -> None:
        self.provider = provider
        self.access_ttl = access_ttl

    def issue_access(self, *, user_id: str, email: str, role: str, session_id: str) -> str:
        """
        Sign a new access token.

        :raises MisconfigurationError: If no signing key is configured.
        """
        return self.provider.create_access_token(
            identity=str(user_id),
            additional_claims={"email": email, "role": role, "sid": session_id},
            expires_delta=self.access_ttl,
        )

    def verify(self, token: str) -> TokenVerification:
        """Classify ``token`` as valid, expired, malformed or not yet valid."""
        try:
            payload = self.provider.decode(token)
        except ExpiredSignatureError:
            return TokenVerification(False, TokenStatus.EXPIRED)
        except ImmatureSignatureError:
            return TokenVerification(False, TokenStatus.NOT_YET_VALID)
        except (InvalidTokenError, JWTExtendedException) as exc:
            log.debug("Access token rejected: %s", type(exc).__name__)
            return TokenVerification(False, TokenStatus.MALFORMED)

        try:
            claims = AccessTokenClaims.from_payload(payload)
        except (KeyError, TypeError, ValueError):
            return TokenVerification(False, TokenStatus.MALFORMED)
        if not claims.session_id:
            return TokenVerification(False, TokenStatus.MALFORMED)
        return TokenVerification(True, TokenStatus.VALID, claims)

    def expires_at(self, token: str) -> datetime | None:
        """
        Decode the expiry of a correctly signed token without enforcing it.

        :returns: ``None`` when the token cannot be decoded.
        """
        try:
            payload = self.provider.decode(token, verify_exp=False)
            return from_ts(payload["exp"])
        except (InvalidTokenError, JWTExtendedException, KeyError, TypeError, ValueError):
            return None
