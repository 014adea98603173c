"""Client network metadata behind reverse proxies."""

from __future__ import annotations

from flask import Flask, request
from werkzeug.middleware.proxy_fix import ProxyFix

UNKNOWN = "unknown"


def init_app(app: Flask) -> None:
    """Apply :class:`werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    Controlled by ``USE_PROXYFIX`` (defaults to ``True``) and
    ``PROXY_TRUSTED_HOPS`` (defaults to ``1``). The resolved address feeds the
    IP reputation checks and the per-session ``ip_address`` field, so only
    trust as many hops as actually sit in front of the app.
    """
    if app.config.get("USE_PROXYFIX", True):
        hops = int(app.config.get("PROXY_TRUSTED_HOPS", 1))
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops, x_prefix=hops)


def client_ip() -> str:
    """Return the caller address as seen after proxy resolution."""
    return request.remote_addr or UNKNOWN


def client_user_agent() -> str:
    """Return the raw ``User-Agent`` header, truncated for storage."""
    ua = request.user_agent.string if request.user_agent else ""
    return (ua or UNKNOWN)[:512]
