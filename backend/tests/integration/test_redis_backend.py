"""
End-to-end flows with ``SESSION_BACKEND="redis"``.

The Redis client built by the extension layer is replaced by a FakeRedis
instance so the whole HTTP stack runs against the Redis adapters.
"""

from __future__ import annotations

import fakeredis
import pytest
from sessionkeeper.core import extensions
from sessionkeeper.core.config import TestingConfig
from sessionkeeper.core.extensions import db as _db
from sessionkeeper.factory import create_app
from sessionkeeper.infra.redis.redis_session_store import RedisSessionStore

from tests.factories import SQLAlchemySession
from tests.factories.user import UserFactory
from tests.helpers.http import API, bearer, login, refresh


class RedisTestingConfig(TestingConfig):
    SESSION_BACKEND = "redis"
    REDIS_URL = "redis://fake:6379/0"


@pytest.fixture()
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture()
def redis_app(monkeypatch, redis_server):
    """Application wired to the Redis adapters over FakeRedis."""
    monkeypatch.setattr(
        extensions,
        "build_redis_client",
        lambda url, *, timeout_ms: fakeredis.FakeRedis(server=redis_server),
    )
    app = create_app(RedisTestingConfig)
    with app.app_context():
        _db.create_all()
        SQLAlchemySession.set(_db.session)
        yield app
        SQLAlchemySession.set(None)
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def redis_client(redis_app):
    return redis_app.test_client()


@pytest.fixture()
def user(redis_app):
    return UserFactory(email="henry@example.com")


def test_container_uses_redis_adapters(redis_app) -> None:
    from sessionkeeper.container import get_container

    assert isinstance(get_container(redis_app).session_store, RedisSessionStore)


def test_login_refresh_and_reuse_over_redis(redis_client, user) -> None:
    first = login(redis_client, user.email)

    resp = refresh(redis_client, first["refresh_token"])
    assert resp.status_code == 200
    rotated = resp.get_json()["data"]
    assert rotated["session_id"] == first["session_id"]

    replay = refresh(redis_client, first["refresh_token"])
    assert replay.status_code == 401
    assert replay.get_json()["code"] == "token_expired"

    resp = redis_client.get(f"{API}/auth/me", headers=bearer(rotated["access_token"]))
    assert resp.status_code == 401


def test_logout_revocation_is_stored_in_redis(redis_client, redis_app, user) -> None:
    tokens = login(redis_client, user.email)
    auth = bearer(tokens["access_token"])

    assert redis_client.post(f"{API}/auth/logout", headers=auth, json={}).status_code == 200

    resp = redis_client.get(f"{API}/auth/me", headers=auth)
    assert resp.get_json()["code"] == "token_revoked"
    r = extensions.get_redis(redis_app)
    assert any(k.startswith(b"revoked:at:") for k in r.keys("*"))


def test_health_pings_redis(redis_client) -> None:
    body = redis_client.get(f"{API}/health").get_json()
    assert body["store"] == "ok"
    assert body["status"] == "ok"


def test_store_outage_is_503(redis_client, redis_server, user) -> None:
    redis_server.connected = False

    resp = redis_client.post(
        f"{API}/auth/login", json={"email": user.email, "password": "Passw0rd!"}
    )
    assert resp.status_code == 503
    assert resp.get_json()["code"] == "service_unavailable"

    health = redis_client.get(f"{API}/health")
    assert health.status_code == 503
    assert health.get_json()["store"] == "fail"
