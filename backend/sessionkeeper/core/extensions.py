"""Flask extension instances and initialization helpers."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Stateless extension objects; per-app state lives in ``app.extensions``.
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()

REDIS_EXTENSION_KEY = "redis_client"


def build_redis_client(url: str, *, timeout_ms: int) -> redis.Redis:
    """Create a Redis client whose every call fails fast after ``timeout_ms``."""
    timeout = max(timeout_ms, 1) / 1000.0
    return redis.Redis.from_url(
        url,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        retry_on_timeout=False,
    )


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT and the session store client.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. The Redis client is only
        created for ``SESSION_BACKEND == "redis"`` and is stored on
        ``app.extensions`` rather than on a module global.
    """
    app.config.setdefault("JWT_DECODE_LEEWAY", 0)
    db.init_app(app)

    from sessionkeeper import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)

    if app.config.get("SESSION_BACKEND", "redis") != "redis":
        app.extensions.pop(REDIS_EXTENSION_KEY, None)
        return

    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        raise RuntimeError("SESSION_BACKEND is 'redis' but REDIS_URL is not configured.")

    client = build_redis_client(redis_url, timeout_ms=int(app.config.get("STORE_TIMEOUT_MS", 300)))
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    app.extensions[REDIS_EXTENSION_KEY] = client


def get_redis(app: Flask | None = None) -> redis.Redis:
    """Return the Redis client bound to ``app`` (or the current app)."""
    target = app or current_app
    client = target.extensions.get(REDIS_EXTENSION_KEY)
    if client is None:
        raise RuntimeError("Redis client is not initialized. Call init_app() first.")
    return client
