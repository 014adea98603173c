"""
Unit tests for InMemorySessionStore.

Covered flows:
- create + get
- rotate (OK, NOT_FOUND, EXPIRED, REUSED) and the one-cycle memory of the
  previous hash
- concurrent rotation of the same hash: one winner, racing losers expired
- revoke / revoke_all_for_user / list_user_sessions / sweep_expired
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest
from sessionkeeper.services._shared.ports import (
    InMemorySessionStore,
    RotationResult,
    SessionView,
)

from tests.helpers.stores import LockstepSessionStore


def _now() -> datetime:
    """Return a timezone-aware UTC "now"."""
    return datetime.now(UTC)


def _view(sid: str, user: str, h: str, now: datetime, *, ttl: int = 300) -> SessionView:
    """Build a fresh session snapshot expiring ``ttl`` seconds after ``now``."""
    return SessionView(
        session_id=sid,
        user_id=user,
        refresh_hash=h,
        previous_hash=None,
        user_agent="ua/1",
        ip_address="10.0.0.1",
        created_at=now,
        last_rotated_at=now,
        expires_at=now + timedelta(seconds=ttl),
    )


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


def _rotate(store, presented: str, new: str, now: datetime):
    return store.rotate(
        presented_hash=presented,
        new_hash=new,
        now=now,
        new_expires_at=now + timedelta(seconds=600),
        user_agent="ua/2",
        ip_address="10.0.0.2",
    )


def test_create_and_get(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))

    view = store.get("s1")
    assert view is not None
    assert view.user_id == "u1"
    assert view.refresh_hash == "h1"
    assert view.is_active(now) is True
    assert store.get("missing") is None


def test_rotate_success_replaces_hash_and_keeps_session_id(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))

    attempt = _rotate(store, "h1", "h2", now + timedelta(seconds=5))

    assert attempt.result is RotationResult.OK
    assert attempt.session is not None
    assert attempt.session.session_id == "s1"
    assert attempt.session.refresh_hash == "h2"
    assert attempt.session.previous_hash == "h1"
    assert attempt.session.user_agent == "ua/2"
    assert attempt.session.ip_address == "10.0.0.2"
    assert attempt.session.expires_at == now + timedelta(seconds=605)


def test_rotate_unknown_hash_is_not_found(store):
    attempt = _rotate(store, "nope", "h2", _now())
    assert attempt.result is RotationResult.NOT_FOUND
    assert attempt.session is None


def test_rotate_expired_session(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now, ttl=10))

    attempt = _rotate(store, "h1", "h2", now + timedelta(seconds=11))

    assert attempt.result is RotationResult.EXPIRED
    assert attempt.session is not None and attempt.session.user_id == "u1"


def test_rotate_revoked_session_is_expired(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))
    assert store.revoke("s1", now=now) is True

    assert _rotate(store, "h1", "h2", now).result is RotationResult.EXPIRED


def test_replaying_previous_hash_is_reuse(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))
    assert _rotate(store, "h1", "h2", now).result is RotationResult.OK

    attempt = _rotate(store, "h1", "h3", now)

    assert attempt.result is RotationResult.REUSED
    assert attempt.session is not None and attempt.session.user_id == "u1"
    # the failed attempt did not touch the live hash
    assert store.get("s1").refresh_hash == "h2"


def test_previous_hash_is_remembered_for_one_cycle_only(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))
    _rotate(store, "h1", "h2", now)
    _rotate(store, "h2", "h3", now)

    assert _rotate(store, "h2", "x", now).result is RotationResult.REUSED
    assert _rotate(store, "h1", "x", now).result is RotationResult.NOT_FOUND


def test_concurrent_rotation_has_exactly_one_winner(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))
    results: list[RotationResult] = []
    barrier = threading.Barrier(8)

    def worker(i: int) -> None:
        barrier.wait()
        results.append(_rotate(store, "h1", f"new-{i}", now).result)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(RotationResult.OK) == 1
    assert set(results) - {RotationResult.OK} <= {RotationResult.EXPIRED, RotationResult.REUSED}


def test_rotation_race_losers_are_expired_not_reused():
    now = _now()
    store = LockstepSessionStore(parties=4)
    store.create(_view("s1", "u1", "h1", now))
    results: list[RotationResult] = []

    def worker(i: int) -> None:
        results.append(_rotate(store, "h1", f"new-{i}", now).result)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(RotationResult.OK) == 1
    assert results.count(RotationResult.EXPIRED) == 3
    assert store.get("s1").revoked is False
    assert store.get("s1").previous_hash == "h1"


def test_revoke_reports_whether_session_was_active(store):
    now = _now()
    store.create(_view("s1", "u1", "h1", now))

    assert store.revoke("s1", now=now) is True
    assert store.revoke("s1", now=now) is False
    assert store.revoke("missing", now=now) is False
    assert store.get("s1").revoked is True


def test_revoke_all_for_user_counts_active_sessions_only(store):
    now = _now()
    for i in range(3):
        store.create(_view(f"s{i}", "bulk", f"h{i}", now))
    store.create(_view("other", "someone-else", "hx", now))
    store.revoke("s0", now=now)

    assert store.revoke_all_for_user("bulk", now=now) == 2
    assert store.list_user_sessions("bulk", now=now) == []
    assert len(store.list_user_sessions("someone-else", now=now)) == 1


def test_list_user_sessions_is_oldest_first_and_skips_inactive(store):
    now = _now()
    store.create(_view("late", "u1", "h1", now + timedelta(seconds=20)))
    store.create(_view("early", "u1", "h2", now))
    store.create(_view("short", "u1", "h3", now + timedelta(seconds=10), ttl=1))

    views = store.list_user_sessions("u1", now=now + timedelta(seconds=30))

    assert [v.session_id for v in views] == ["early", "late"]


def test_sweep_expired_drops_sessions_and_indexes(store):
    now = _now()
    store.create(_view("old", "u1", "h1", now, ttl=1))
    store.create(_view("live", "u1", "h2", now, ttl=600))

    assert store.sweep_expired(now=now + timedelta(seconds=5)) == 1
    assert store.get("old") is None
    assert _rotate(store, "h1", "x", now).result is RotationResult.NOT_FOUND
    assert store.get("live") is not None
