from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Protocol


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REUSED = auto()


@dataclass(frozen=True, slots=True)
class SessionView:
    """
    Read-model for a stored session.

    :ivar session_id: Stable identifier, unchanged across rotations.
    :ivar user_id: Owner user id.
    :ivar refresh_hash: SHA-256 hex digest of the current refresh token.
    :ivar previous_hash: Digest rotated away by the most recent rotation.
    :ivar revoked: Whether the session has been explicitly revoked.
    :ivar expires_at: Absolute expiration (UTC).
    """

    session_id: str
    user_id: str
    refresh_hash: str
    previous_hash: str | None
    user_agent: str
    ip_address: str
    created_at: datetime
    last_rotated_at: datetime
    expires_at: datetime
    revoked: bool = False

    def is_active(self, now: datetime) -> bool:
        return not self.revoked and self.expires_at > now


@dataclass(frozen=True, slots=True)
class RotationAttempt:
    """
    Raw store answer to a rotation.

    ``session`` is the post-rotation view on ``OK``, the matched session on
    ``EXPIRED`` and ``REUSED`` (so the caller knows whose sessions to revoke),
    and ``None`` on ``NOT_FOUND``.
    """

    result: RotationResult
    session: SessionView | None = None


class SessionStore(Protocol):
    """
    Stateful store for refresh sessions.

    Rotation MUST be a single compare-and-swap on the stored hash: of two
    concurrent rotations presenting the same hash, exactly one observes
    ``OK`` and the others ``EXPIRED``. The hash rotated away stays indexed
    for one rotation cycle so a later replay can be reported as ``REUSED``.
    """

    def create(self, session: SessionView) -> None:
        """Persist a brand-new session. Must run before the token reaches the client."""

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
        """Atomically swap ``presented_hash`` for ``new_hash`` on the matching session."""

    def get(self, session_id: str) -> SessionView | None:
        """Fetch a single session snapshot (if present)."""

    def revoke(self, session_id: str, *, now: datetime) -> bool:
        """Mark a session revoked. :returns: True if it was active."""

    def revoke_all_for_user(self, user_id: str, *, now: datetime) -> int:
        """
        Revoke all sessions for the given user.

        :returns: Number of sessions that were active.
        """

    def list_user_sessions(self, user_id: str, *, now: datetime) -> list[SessionView]:
        """List active sessions for a user, oldest first."""

    def sweep_expired(self, *, now: datetime) -> int:
        """Drop sessions past expiry. Stores with native TTL may return 0."""


class InMemorySessionStore(SessionStore):
    """
    In-memory session store with atomic rotation behavior.

    .. note::
       A single lock guards every index. Rotation reads the current-hash
       index, then re-checks the session under the lock before swapping, so
       a caller that lost the swap to a concurrent rotation is told apart
       from a later replay. Nothing is shared across processes.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionView] = {}
        self._by_hash: dict[str, str] = {}
        self._by_prev: dict[str, str] = {}
        self._by_user: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    # -------------------------- API ----------------------------

    def create(self, session: SessionView) -> None:
        with self._lock:
            self._sessions[session.session_id] = session
            self._by_hash[session.refresh_hash] = session.session_id
            self._by_user.setdefault(session.user_id, set()).add(session.session_id)

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
        sid = self._lookup(presented_hash)
        with self._lock:
            if sid is None:
                return self._classify_miss_locked(presented_hash, lost_race=False)

            s = self._sessions.get(sid)
            if s is None:
                self._by_hash.pop(presented_hash, None)
                return RotationAttempt(RotationResult.NOT_FOUND)
            if s.refresh_hash != presented_hash:
                # another rotation committed after the lookup
                return self._classify_miss_locked(presented_hash, lost_race=True)
            if not s.is_active(now):
                return RotationAttempt(RotationResult.EXPIRED, s)

            if s.previous_hash is not None:
                self._by_prev.pop(s.previous_hash, None)
            rotated = replace(
                s,
                refresh_hash=new_hash,
                previous_hash=presented_hash,
                user_agent=user_agent,
                ip_address=ip_address,
                last_rotated_at=now,
                expires_at=new_expires_at,
            )
            self._sessions[sid] = rotated
            del self._by_hash[presented_hash]
            self._by_hash[new_hash] = sid
            self._by_prev[presented_hash] = sid
            return RotationAttempt(RotationResult.OK, rotated)

    def get(self, session_id: str) -> SessionView | None:
        with self._lock:
            return self._sessions.get(session_id)

    def revoke(self, session_id: str, *, now: datetime) -> bool:
        with self._lock:
            return self._revoke_locked(session_id, now)

    def revoke_all_for_user(self, user_id: str, *, now: datetime) -> int:
        with self._lock:
            sids = list(self._by_user.get(user_id, set()))
            return sum(1 for sid in sids if self._revoke_locked(sid, now))

    def list_user_sessions(self, user_id: str, *, now: datetime) -> list[SessionView]:
        with self._lock:
            views = [
                self._sessions[sid]
                for sid in self._by_user.get(user_id, set())
                if sid in self._sessions and self._sessions[sid].is_active(now)
            ]
        return sorted(views, key=lambda v: v.created_at)

    def sweep_expired(self, *, now: datetime) -> int:
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if s.expires_at <= now]
            for sid in stale:
                s = self._sessions.pop(sid)
                self._by_hash.pop(s.refresh_hash, None)
                if s.previous_hash is not None:
                    self._by_prev.pop(s.previous_hash, None)
                members = self._by_user.get(s.user_id)
                if members is not None:
                    members.discard(sid)
                    if not members:
                        del self._by_user[s.user_id]
            return len(stale)

    # ------------------------- helpers -------------------------

    def _lookup(self, presented_hash: str) -> str | None:
        with self._lock:
            return self._by_hash.get(presented_hash)

    def _classify_miss_locked(self, presented_hash: str, *, lost_race: bool) -> RotationAttempt:
        prev_sid = self._by_prev.get(presented_hash)
        if prev_sid is not None and prev_sid in self._sessions:
            result = RotationResult.EXPIRED if lost_race else RotationResult.REUSED
            return RotationAttempt(result, self._sessions[prev_sid])
        return RotationAttempt(RotationResult.NOT_FOUND)

    def _revoke_locked(self, session_id: str, now: datetime) -> bool:
        s = self._sessions.get(session_id)
        if s is None:
            return False
        was_active = s.is_active(now)
        if not s.revoked:
            # hash index kept so a later rotation reports EXPIRED, not NOT_FOUND
            self._sessions[session_id] = replace(s, revoked=True)
        return was_active
