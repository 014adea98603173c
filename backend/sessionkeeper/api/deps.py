"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request

from sessionkeeper.container import ServiceContainer, get_container
from sessionkeeper.core.errors import Unauthorized
from sessionkeeper.core.proxy import client_ip, client_user_agent
from sessionkeeper.services.auth.dto import ClientInfo
from sessionkeeper.services.tokens.issuer import AccessTokenClaims

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "Bearer "


def services() -> ServiceContainer:
    """Return the service container bound to the current application."""
    return get_container()


def client_info() -> ClientInfo:
    """Capture the caller's user agent and address for session bookkeeping."""
    return ClientInfo(user_agent=client_user_agent(), ip_address=client_ip())


def bearer_token() -> str:
    """Extract the raw bearer token from the ``Authorization`` header."""
    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX) or not header[len(BEARER_PREFIX) :].strip():
        raise Unauthorized("Missing bearer token", code="token_missing")
    return header[len(BEARER_PREFIX) :].strip()


def current_claims() -> AccessTokenClaims:
    """Return the claims stored by :func:`require_auth` for this request."""
    return g.claims  # type: ignore[no-any-return]


def require_auth(func: F) -> F:
    """Ensure the request carries a valid, unrevoked access token on a live session."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token()
        g.claims = services().auth.authenticate(token)
        g.access_token = token
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def no_store(response: Response) -> Response:
    """Forbid caches from keeping responses that carry credentials."""
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
