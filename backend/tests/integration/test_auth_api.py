"""Integration tests for authentication and session endpoints."""

from __future__ import annotations

import pytest

from tests.factories.user import UserFactory
from tests.helpers.http import API, bearer, login, refresh


@pytest.fixture()
def user(session):
    return UserFactory(email="dana@example.com", role="staff")


def test_login_returns_token_pair_and_profile(client, user) -> None:
    """A valid login answers with a bearer pair, the session id and the user."""

    resp = client.post(
        f"{API}/auth/login", json={"email": "dana@example.com", "password": "Passw0rd!"}
    )

    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store"
    data = resp.get_json()["data"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 900
    assert data["access_token"] and data["refresh_token"] and data["session_id"]
    assert data["user"]["id"] == user.id
    assert data["user"]["permissions"] == ["products:read", "orders:read"]


def test_login_failure_is_problem_json(client, user) -> None:
    resp = client.post(
        f"{API}/auth/login", json={"email": "dana@example.com", "password": "wrong"}
    )

    assert resp.status_code == 401
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["code"] == "invalid_credentials"
    assert body["request_id"] == resp.headers["X-Request-ID"]


def test_login_validation_error(client) -> None:
    resp = client.post(f"{API}/auth/login", json={"email": "not-an-email"})

    assert resp.status_code == 422
    body = resp.get_json()
    assert body["code"] == "validation_error"
    assert {"email", "password"} <= set(body["details"]["errors"])


def test_banned_address_gets_403(client, container, user) -> None:
    container.auth.ip_reputation.threshold = 2
    for _ in range(2):
        client.post(f"{API}/auth/login", json={"email": "dana@example.com", "password": "x"})

    resp = client.post(
        f"{API}/auth/login", json={"email": "dana@example.com", "password": "Passw0rd!"}
    )

    assert resp.status_code == 403
    assert resp.get_json()["code"] == "ip_banned"


def test_refresh_rotates_and_reuse_kills_all_sessions(client, user) -> None:
    first = login(client, user.email)
    second = login(client, user.email)

    resp = refresh(client, first["refresh_token"])
    assert resp.status_code == 200
    rotated = resp.get_json()["data"]
    assert rotated["session_id"] == first["session_id"]
    assert rotated["refresh_token"] != first["refresh_token"]

    replay = refresh(client, first["refresh_token"])
    assert replay.status_code == 401
    assert replay.get_json()["code"] == "token_expired"

    for token in (rotated["access_token"], second["access_token"]):
        resp = client.get(f"{API}/auth/me", headers=bearer(token))
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "token_expired"


def test_refresh_requires_a_token(client) -> None:
    assert client.post(f"{API}/auth/refresh", json={}).status_code == 422
    assert refresh(client, "never-issued").status_code == 401


def test_me_requires_bearer(client, user) -> None:
    resp = client.get(f"{API}/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "token_missing"

    resp = client.get(f"{API}/auth/me", headers=bearer("garbage"))
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "token_malformed"

    tokens = login(client, user.email)
    resp = client.get(f"{API}/auth/me", headers=bearer(tokens["access_token"]))
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["email"] == "dana@example.com"
    assert data["session_id"] == tokens["session_id"]


def test_list_and_revoke_sessions(client, user) -> None:
    current = login(client, user.email)
    other = login(client, user.email)
    auth = bearer(current["access_token"])

    resp = client.get(f"{API}/auth/sessions", headers=auth)
    assert resp.status_code == 200
    items = resp.get_json()["data"]
    assert {i["session_id"] for i in items} == {current["session_id"], other["session_id"]}
    assert [i["current"] for i in items if i["session_id"] == current["session_id"]] == [True]

    resp = client.delete(f"{API}/auth/sessions/{other['session_id']}", headers=auth)
    assert resp.status_code == 204
    resp = client.delete(f"{API}/auth/sessions/{other['session_id']}", headers=auth)
    assert resp.status_code == 404
    assert refresh(client, other["refresh_token"]).status_code == 401


def test_cannot_revoke_someone_elses_session(client, user) -> None:
    intruder = UserFactory(email="eve@example.com")
    victim = login(client, user.email)
    attacker = login(client, intruder.email)

    resp = client.delete(
        f"{API}/auth/sessions/{victim['session_id']}", headers=bearer(attacker["access_token"])
    )

    assert resp.status_code == 404
    assert refresh(client, victim["refresh_token"]).status_code == 200


def test_logout_revokes_the_access_token(client, user) -> None:
    tokens = login(client, user.email)
    auth = bearer(tokens["access_token"])

    resp = client.post(f"{API}/auth/logout", headers=auth, json={})
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"logged_out": True}

    resp = client.get(f"{API}/auth/me", headers=auth)
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "token_revoked"
    assert refresh(client, tokens["refresh_token"]).status_code == 401


def test_logout_of_unknown_session_is_404(client, user) -> None:
    tokens = login(client, user.email)

    resp = client.post(
        f"{API}/auth/logout",
        headers=bearer(tokens["access_token"]),
        json={"session_id": "does-not-exist"},
    )

    assert resp.status_code == 404
    assert resp.get_json()["code"] == "session_not_found"


def test_logout_all(client, user) -> None:
    sessions = [login(client, user.email) for _ in range(3)]

    resp = client.post(
        f"{API}/auth/logout-all", headers=bearer(sessions[0]["access_token"]), json={}
    )

    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"invalidated_count": 3}
    for s in sessions:
        assert refresh(client, s["refresh_token"]).status_code == 401
