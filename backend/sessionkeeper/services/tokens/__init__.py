from sessionkeeper.services.tokens.issuer import (
    AccessTokenClaims,
    TokenIssuer,
    TokenStatus,
    TokenVerification,
)
from sessionkeeper.services.tokens.revocation import RevocationRegistry, fingerprint

__all__ = [
    "AccessTokenClaims",
    "RevocationRegistry",
    "TokenIssuer",
    "TokenStatus",
    "TokenVerification",
    "fingerprint",
]
