from __future__ import annotations

from datetime import timedelta
from typing import Any, Protocol


class TokenProvider(Protocol):
    """
    Port for signing and decoding JWT access tokens.

    ``decode`` raises the underlying library's errors unchanged; the
    :class:`~sessionkeeper.services.tokens.issuer.TokenIssuer` classifies them.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str: ...

    def decode(self, token: str, *, verify_exp: bool = True) -> dict[str, Any]: ...
