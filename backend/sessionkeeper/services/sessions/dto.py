"""DTOs for the session registry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sessionkeeper.services._shared.ports import RotationResult, SessionView


@dataclass(frozen=True, slots=True)
class SessionGrant:
    """
    Credentials handed to the client when a session starts or rotates.

    The raw refresh token exists only here; the store keeps its hash.
    """

    session_id: str
    refresh_token: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"SessionGrant(session_id={self.session_id!r}, refresh_token=<redacted>)"


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    """
    Answer of :meth:`SessionRegistry.rotate`.

    :ivar result: Classification of the attempt.
    :ivar user_id: Owner of the matched session (``None`` on ``NOT_FOUND``).
    :ivar grant: New credentials, only on ``OK``.
    """

    result: RotationResult
    user_id: str | None = None
    grant: SessionGrant | None = None


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Client-safe description of an active session."""

    session_id: str
    user_agent: str
    ip_address: str
    created_at: datetime
    last_rotated_at: datetime
    expires_at: datetime

    @classmethod
    def from_view(cls, view: SessionView) -> SessionSummary:
        return cls(
            session_id=view.session_id,
            user_agent=view.user_agent,
            ip_address=view.ip_address,
            created_at=view.created_at,
            last_rotated_at=view.last_rotated_at,
            expires_at=view.expires_at,
        )
