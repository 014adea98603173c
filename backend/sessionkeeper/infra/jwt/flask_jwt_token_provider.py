# sessionkeeper/infra/jwt/flask_jwt_token_provider.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from flask import current_app

from sessionkeeper.services._shared.errors import MisconfigurationError
from sessionkeeper.services._shared.ports import TokenProvider


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    Adapter for Flask-JWT-Extended.

    .. note::
       Requires an active Flask app context with proper JWT settings.
       ``JWT_SECRET_KEY`` must be set explicitly; the library's silent fallback
       to ``SECRET_KEY`` is refused.
    """

    def _require_signing_key(self) -> None:
        if not current_app.config.get("JWT_SECRET_KEY"):
            raise MisconfigurationError("JWT_SECRET_KEY is not configured.")

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        self._require_signing_key()
        return cast(
            str,
            _create_access(
                identity=identity,
                additional_claims=additional_claims or {},
                expires_delta=expires_delta,
                fresh=False,
            ),
        )

    def decode(self, token: str, *, verify_exp: bool = True) -> dict[str, Any]:
        from flask_jwt_extended import decode_token

        self._require_signing_key()
        return cast(dict[str, Any], decode_token(token, allow_expired=not verify_exp))
