"""Per-user session bookkeeping and refresh-token rotation."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta
from uuid import uuid4

from sessionkeeper.core.clock import Clock, utcnow
from sessionkeeper.services._shared.ports import RotationResult, SessionStore, SessionView
from sessionkeeper.services.sessions.dto import RotationOutcome, SessionGrant, SessionSummary

log = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 48


def hash_refresh_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SessionRegistry:
    """
    Create, rotate, list and revoke refresh sessions.

    Refresh tokens are opaque random strings; only their SHA-256 digest is
    persisted. Every rotation replaces the digest while keeping the session id,
    and the digest it replaces is remembered for one cycle so a replay of an
    old token can be reported as reuse.

    :param store: Session persistence port.
    :param refresh_ttl: Lifetime granted on creation and on every rotation.
    :param max_sessions_per_user: Active sessions kept per user; creating one
        more revokes the oldest. ``0`` disables the cap.
    :param clock: Source of "now".
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        refresh_ttl: timedelta,
        max_sessions_per_user: int = 5,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.refresh_ttl = refresh_ttl
        self.max_sessions_per_user = max_sessions_per_user
        self.clock = clock or utcnow

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def create_session(self, *, user_id: str, user_agent: str, ip_address: str) -> SessionGrant:
        """Open a new session and return its one-time visible refresh token."""
        now = self.clock()
        self._enforce_cap(user_id)

        raw = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
        view = SessionView(
            session_id=str(uuid4()),
            user_id=user_id,
            refresh_hash=hash_refresh_token(raw),
            previous_hash=None,
            user_agent=user_agent,
            ip_address=ip_address,
            created_at=now,
            last_rotated_at=now,
            expires_at=now + self.refresh_ttl,
        )
        self.store.create(view)
        log.info(
            "Session created",
            extra={"event": "session_created", "user_id": user_id, "session_id": view.session_id},
        )
        return SessionGrant(view.session_id, raw, view.expires_at)

    def rotate(self, presented: str, *, user_agent: str, ip_address: str) -> RotationOutcome:
        """
        Exchange a refresh token for a new one on the same session.

        :returns: ``OK`` with a new grant, or ``NOT_FOUND`` / ``EXPIRED`` /
            ``REUSED`` with the owning user id when known.
        """
        now = self.clock()
        new_raw = secrets.token_urlsafe(REFRESH_TOKEN_BYTES)
        attempt = self.store.rotate(
            presented_hash=hash_refresh_token(presented),
            new_hash=hash_refresh_token(new_raw),
            now=now,
            new_expires_at=now + self.refresh_ttl,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        session = attempt.session
        user_id = session.user_id if session else None

        if attempt.result is RotationResult.OK and session is not None:
            return RotationOutcome(
                RotationResult.OK,
                user_id,
                SessionGrant(session.session_id, new_raw, session.expires_at),
            )
        if attempt.result is RotationResult.REUSED:
            log.warning(
                "Refresh token reuse detected",
                extra={
                    "event": "refresh_reuse",
                    "user_id": user_id,
                    "session_id": session.session_id if session else None,
                },
            )
        return RotationOutcome(attempt.result, user_id)

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    def invalidate_session(self, session_id: str) -> bool:
        """Revoke one session. :returns: ``True`` if it was active."""
        revoked = self.store.revoke(session_id, now=self.clock())
        if revoked:
            log.info(
                "Session invalidated",
                extra={"event": "session_invalidated", "session_id": session_id},
            )
        return revoked

    def invalidate_user_session(self, user_id: str, session_id: str) -> bool:
        """Revoke ``session_id`` only if it belongs to ``user_id``."""
        view = self.store.get(session_id)
        if view is None or view.user_id != user_id:
            return False
        return self.invalidate_session(session_id)

    def invalidate_all_user_sessions(self, user_id: str) -> int:
        """Revoke every session of ``user_id``. :returns: Count that were active."""
        count = self.store.revoke_all_for_user(user_id, now=self.clock())
        log.info(
            "All user sessions invalidated",
            extra={"event": "sessions_invalidated", "user_id": user_id, "count": count},
        )
        return count

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def list_user_sessions(self, user_id: str) -> list[SessionSummary]:
        return [
            SessionSummary.from_view(v)
            for v in self.store.list_user_sessions(user_id, now=self.clock())
        ]

    def is_session_valid(self, session_id: str) -> bool:
        view = self.store.get(session_id)
        return view is not None and view.is_active(self.clock())

    def sweep_expired(self) -> int:
        """Purge expired sessions from stores without native TTL."""
        return self.store.sweep_expired(now=self.clock())

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _enforce_cap(self, user_id: str) -> None:
        if self.max_sessions_per_user <= 0:
            return
        active = self.store.list_user_sessions(user_id, now=self.clock())
        overflow = len(active) - self.max_sessions_per_user + 1
        for view in active[: max(0, overflow)]:
            self.store.revoke(view.session_id, now=self.clock())
            log.info(
                "Oldest session evicted",
                extra={
                    "event": "session_evicted",
                    "user_id": user_id,
                    "session_id": view.session_id,
                },
            )
