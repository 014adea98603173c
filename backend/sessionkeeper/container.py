"""Per-application composition of stores, components and services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from flask import Flask, current_app

from sessionkeeper.core.clock import Clock, utcnow
from sessionkeeper.core.crypto import SecretBox
from sessionkeeper.core.extensions import get_redis
from sessionkeeper.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from sessionkeeper.infra.redis.redis_ip_reputation import RedisIpReputation
from sessionkeeper.infra.redis.redis_revocation_store import RedisRevocationStore
from sessionkeeper.infra.redis.redis_session_store import RedisSessionStore
from sessionkeeper.infra.sql.sql_user_store import SqlUserStore
from sessionkeeper.services._shared.ports import (
    InMemoryIpReputation,
    InMemoryRevocationStore,
    InMemorySessionStore,
    IpReputation,
    RevocationStore,
    SessionStore,
    UserStore,
)
from sessionkeeper.services.auth.dto import AuthTokenConfig
from sessionkeeper.services.auth.service import AuthService
from sessionkeeper.services.mfa.manager import MfaManager
from sessionkeeper.services.mfa.service import MfaService
from sessionkeeper.services.sessions.registry import SessionRegistry
from sessionkeeper.services.tokens.issuer import TokenIssuer
from sessionkeeper.services.tokens.revocation import RevocationRegistry

log = logging.getLogger(__name__)

EXTENSION_KEY = "sessionkeeper"


@dataclass(slots=True)
class ServiceContainer:
    """Everything a request handler needs, bound to one Flask app."""

    users: UserStore
    session_store: SessionStore
    revocation_store: RevocationStore
    issuer: TokenIssuer
    sessions: SessionRegistry
    revocations: RevocationRegistry
    auth: AuthService
    mfa: MfaService

    def sweep(self) -> tuple[int, int]:
        """Purge expired sessions and revocations. :returns: ``(sessions, revocations)``."""
        swept_sessions = self.sessions.sweep_expired()
        swept_revocations = 0
        if isinstance(self.revocation_store, InMemoryRevocationStore):
            swept_revocations = self.revocation_store.sweep_expired()
        return swept_sessions, swept_revocations


def build_container(
    app: Flask,
    *,
    users: UserStore | None = None,
    clock: Clock | None = None,
) -> ServiceContainer:
    """
    Assemble the component graph from ``app.config``.

    ``SESSION_BACKEND == "redis"`` selects the Redis adapters over the client
    stored by :func:`sessionkeeper.core.extensions.init_app`; ``"memory"``
    keeps sessions, revocations and failure counters in this process.

    :raises MisconfigurationError: If ``MFA_ENCRYPTION_KEY`` is missing or malformed.
    """
    cfg = app.config
    clock = clock or utcnow
    backend = cfg.get("SESSION_BACKEND", "redis")

    session_store: SessionStore
    revocation_store: RevocationStore
    ip_reputation: IpReputation
    if backend == "redis":
        client = get_redis(app)
        session_store = RedisSessionStore(client)
        revocation_store = RedisRevocationStore(client)
        ip_reputation = RedisIpReputation(
            client,
            threshold=int(cfg["IP_BAN_THRESHOLD"]),
            window_seconds=int(cfg["IP_BAN_WINDOW_SECONDS"]),
        )
    elif backend == "memory":
        session_store = InMemorySessionStore()
        revocation_store = InMemoryRevocationStore(clock=clock)
        ip_reputation = InMemoryIpReputation(
            threshold=int(cfg["IP_BAN_THRESHOLD"]),
            window=timedelta(seconds=int(cfg["IP_BAN_WINDOW_SECONDS"])),
            clock=clock,
        )
    else:
        raise ValueError(f"Unknown SESSION_BACKEND {backend!r}; expected 'redis' or 'memory'.")

    users = users or SqlUserStore()
    token_cfg = AuthTokenConfig(
        access_expires=timedelta(minutes=int(cfg["ACCESS_TOKEN_TTL_MINUTES"])),
        refresh_expires=timedelta(days=int(cfg["REFRESH_TOKEN_TTL_DAYS"])),
    )
    issuer = TokenIssuer(provider=JWTTokenProvider(), access_ttl=token_cfg.access_expires)
    sessions = SessionRegistry(
        store=session_store,
        refresh_ttl=token_cfg.refresh_expires,
        max_sessions_per_user=int(cfg["MAX_SESSIONS_PER_USER"]),
        clock=clock,
    )
    revocations = RevocationRegistry(store=revocation_store, issuer=issuer, clock=clock)
    mfa_manager = MfaManager(
        users=users,
        box=SecretBox(cfg.get("MFA_ENCRYPTION_KEY")),
        issuer=cfg.get("MFA_ISSUER", "sessionkeeper"),
        valid_window=int(cfg["MFA_VALID_WINDOW"]),
        backup_code_count=int(cfg["MFA_BACKUP_CODE_COUNT"]),
        clock=clock,
    )
    auth = AuthService(
        users=users,
        ip_reputation=ip_reputation,
        sessions=sessions,
        issuer=issuer,
        revocations=revocations,
        mfa=mfa_manager,
        token_cfg=token_cfg,
        clock=clock,
    )
    return ServiceContainer(
        users=users,
        session_store=session_store,
        revocation_store=revocation_store,
        issuer=issuer,
        sessions=sessions,
        revocations=revocations,
        auth=auth,
        mfa=MfaService(manager=mfa_manager, clock=clock),
    )


def init_app(app: Flask) -> None:
    """Build the container once per app and store it on ``app.extensions``."""
    app.extensions[EXTENSION_KEY] = build_container(app)
    log.info(
        "Session lifecycle wired (backend=%s)",
        app.config.get("SESSION_BACKEND"),
        extra={"event": "startup"},
    )


def get_container(app: Flask | None = None) -> ServiceContainer:
    target = app or current_app
    container = target.extensions.get(EXTENSION_KEY)
    if container is None:
        raise RuntimeError("Service container is not initialized. Call init_app() first.")
    return container
