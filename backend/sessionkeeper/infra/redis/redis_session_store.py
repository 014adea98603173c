# comments in English; reST docstrings
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError, WatchError  # type: ignore[import-untyped]

from sessionkeeper.core.clock import from_ts, to_ts
from sessionkeeper.services._shared.errors import StoreUnavailableError
from sessionkeeper.services._shared.ports import (
    RotationAttempt,
    RotationResult,
    SessionStore,
    SessionView,
)

log = logging.getLogger(__name__)

# one initial attempt plus one re-read after a lost CAS
ROTATE_ATTEMPTS = 2
REVOKE_ATTEMPTS = 3


def _s(raw: bytes | str | None, default: str = "") -> str:
    if raw is None:
        return default
    return raw.decode() if isinstance(raw, bytes | bytearray) else str(raw)


@dataclass(slots=True)
class RedisSessionStore(SessionStore):
    """
    Redis-backed session store with compare-and-swap rotation.

    Layout
    ------
    ``sess:{sid}``
        Hash with the session fields; TTL follows ``expires_at``.
    ``sess:rt:{hash}``
        Current refresh hash → session id.
    ``sess:prev:{hash}``
        Hash rotated away by the latest rotation → session id.
    ``sess:u:{user_id}``
        Set of session ids owned by the user (stale members are pruned lazily).

    :param r: A Redis client (already connected, built with short socket timeouts).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _k(session_id: str) -> str:
        return f"sess:{session_id}"

    @staticmethod
    def _k_rt(refresh_hash: str) -> str:
        return f"sess:rt:{refresh_hash}"

    @staticmethod
    def _k_prev(refresh_hash: str) -> str:
        return f"sess:prev:{refresh_hash}"

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"sess:u:{user_id}"

    @staticmethod
    def _ttl_ms(expires_at: datetime, now: datetime) -> int:
        return max(1, int((expires_at - now).total_seconds() * 1000))

    @staticmethod
    def _mapping(view: SessionView) -> dict[str, str]:
        return {
            "user_id": view.user_id,
            "refresh_hash": view.refresh_hash,
            "prev_hash": view.previous_hash or "",
            "user_agent": view.user_agent,
            "ip": view.ip_address,
            "created_at": str(to_ts(view.created_at)),
            "last_rotated_at": str(to_ts(view.last_rotated_at)),
            "expires_at": str(to_ts(view.expires_at)),
            "revoked": "1" if view.revoked else "0",
        }

    @staticmethod
    def _view(session_id: str, h: dict) -> SessionView:
        return SessionView(
            session_id=session_id,
            user_id=_s(h.get(b"user_id")),
            refresh_hash=_s(h.get(b"refresh_hash")),
            previous_hash=_s(h.get(b"prev_hash")) or None,
            user_agent=_s(h.get(b"user_agent")),
            ip_address=_s(h.get(b"ip")),
            created_at=from_ts(int(_s(h.get(b"created_at"), "0"))),
            last_rotated_at=from_ts(int(_s(h.get(b"last_rotated_at"), "0"))),
            expires_at=from_ts(int(_s(h.get(b"expires_at"), "0"))),
            revoked=_s(h.get(b"revoked"), "0") == "1",
        )

    # -------------------- API ------------------------

    def create(self, session: SessionView) -> None:
        """
        Insert the session *before* the refresh token is handed to the client.
        """
        ttl_ms = self._ttl_ms(session.expires_at, session.created_at)
        try:
            pipe = self.r.pipeline(transaction=True)
            pipe.hset(self._k(session.session_id), mapping=self._mapping(session))
            pipe.pexpire(self._k(session.session_id), ttl_ms)
            pipe.set(self._k_rt(session.refresh_hash), session.session_id, px=ttl_ms)
            pipe.sadd(self._ku(session.user_id), session.session_id)
            pipe.execute()
        except RedisError as exc:
            raise StoreUnavailableError() from exc

    def rotate(
        self,
        *,
        presented_hash: str,
        new_hash: str,
        now: datetime,
        new_expires_at: datetime,
        user_agent: str,
        ip_address: str,
    ) -> RotationAttempt:
        """
        Swap ``presented_hash`` for ``new_hash`` with WATCH/MULTI/EXEC.

        The session hash and the current-hash index are watched; if another
        rotation commits in between, EXEC fails and the call re-reads once.
        A caller that saw its hash as current and then lost the swap is
        reported as ``EXPIRED``: it raced a legitimate rotation. Only a hash
        that was already rotated away when first read counts as ``REUSED``.
        """
        lost_race = False
        try:
            for _ in range(ROTATE_ATTEMPTS):
                attempt = self._try_rotate(
                    presented_hash=presented_hash,
                    new_hash=new_hash,
                    now=now,
                    new_expires_at=new_expires_at,
                    user_agent=user_agent,
                    ip_address=ip_address,
                    lost_race=lost_race,
                )
                if attempt is not None:
                    return attempt
                lost_race = True
                log.info("Session rotation lost a CAS race", extra={"event": "rotate_retry"})
            return self._classify_miss(presented_hash, lost_race=True)
        except RedisError as exc:
            raise StoreUnavailableError() from exc

    def _try_rotate(
        self,
        *,
        presented_hash: str,
        new_hash: str,
        now: datetime,
        new_expires_at: datetime,
        user_agent: str,
        ip_address: str,
        lost_race: bool,
    ) -> RotationAttempt | None:
        """Single CAS attempt. Returns ``None`` when the caller should re-read."""
        k_rt = self._k_rt(presented_hash)
        sid = _s(self.r.get(k_rt)) or None
        if sid is None:
            return self._classify_miss(presented_hash, lost_race=lost_race)

        k_sess = self._k(sid)
        try:
            with self.r.pipeline() as p:
                p.watch(k_sess, k_rt)
                h = p.hgetall(k_sess)
                if not h:
                    p.unwatch()
                    return RotationAttempt(RotationResult.NOT_FOUND)

                current = self._view(sid, h)
                if current.refresh_hash != presented_hash:
                    # index points at a session that already moved on
                    p.unwatch()
                    return None
                if not current.is_active(now):
                    p.unwatch()
                    return RotationAttempt(RotationResult.EXPIRED, current)

                rotated = replace(
                    current,
                    refresh_hash=new_hash,
                    previous_hash=presented_hash,
                    user_agent=user_agent,
                    ip_address=ip_address,
                    last_rotated_at=now,
                    expires_at=new_expires_at,
                )
                ttl_ms = self._ttl_ms(new_expires_at, now)

                p.multi()
                p.hset(k_sess, mapping=self._mapping(rotated))
                p.pexpire(k_sess, ttl_ms)
                p.delete(k_rt)
                if current.previous_hash:
                    p.delete(self._k_prev(current.previous_hash))
                p.set(self._k_rt(new_hash), sid, px=ttl_ms)
                p.set(self._k_prev(presented_hash), sid, px=ttl_ms)
                p.sadd(self._ku(current.user_id), sid)
                p.execute()
            return RotationAttempt(RotationResult.OK, rotated)
        except WatchError:
            return None

    def _classify_miss(self, presented_hash: str, *, lost_race: bool) -> RotationAttempt:
        prev_sid = _s(self.r.get(self._k_prev(presented_hash))) or None
        if prev_sid is not None:
            view = self.get(prev_sid)
            if view is not None:
                result = RotationResult.EXPIRED if lost_race else RotationResult.REUSED
                return RotationAttempt(result, view)
        return RotationAttempt(RotationResult.NOT_FOUND)

    def get(self, session_id: str) -> SessionView | None:
        try:
            h = self.r.hgetall(self._k(session_id))
        except RedisError as exc:
            raise StoreUnavailableError() from exc
        if not h:
            return None
        return self._view(session_id, h)

    def _mark_revoked(self, session_id: str) -> SessionView | None:
        """
        Flag an existing session as revoked. :returns: The view before the write.

        The expiry read under WATCH is re-applied in the same transaction, so
        a key that lapses between the read and the write is not recreated
        without a TTL. The current-hash index is kept so a later rotation
        reports ``EXPIRED``.
        """
        key = self._k(session_id)
        for _ in range(REVOKE_ATTEMPTS):
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    h = p.hgetall(key)
                    if not h:
                        p.unwatch()
                        return None
                    view = self._view(session_id, h)
                    p.multi()
                    p.hset(key, "revoked", "1")
                    p.pexpireat(key, view.expires_at)
                    p.execute()
                return view
            except WatchError:
                continue
        raise StoreUnavailableError()

    def revoke(self, session_id: str, *, now: datetime) -> bool:
        try:
            view = self._mark_revoked(session_id)
        except RedisError as exc:
            raise StoreUnavailableError() from exc
        return view is not None and view.is_active(now)

    def revoke_all_for_user(self, user_id: str, *, now: datetime) -> int:
        key_u = self._ku(user_id)
        try:
            members = [_s(m) for m in self.r.smembers(key_u)]
            if not members:
                return 0
            active = 0
            for sid in members:
                view = self._mark_revoked(sid)
                if view is not None and view.is_active(now):
                    active += 1
            self.r.srem(key_u, *members)
            return active
        except RedisError as exc:
            raise StoreUnavailableError() from exc

    def list_user_sessions(self, user_id: str, *, now: datetime) -> list[SessionView]:
        key_u = self._ku(user_id)
        try:
            members = sorted(_s(m) for m in self.r.smembers(key_u))
            views: list[SessionView] = []
            stale: list[str] = []
            for sid in members:
                v = self.get(sid)
                if v is None:
                    # underlying hash expired -> prune index
                    stale.append(sid)
                elif v.is_active(now):
                    views.append(v)
            if stale:
                self.r.srem(key_u, *stale)
        except RedisError as exc:
            raise StoreUnavailableError() from exc
        return sorted(views, key=lambda v: v.created_at)

    def sweep_expired(self, *, now: datetime) -> int:
        # native key TTL does the work
        return 0
