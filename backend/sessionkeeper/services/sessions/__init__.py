from sessionkeeper.services.sessions.dto import RotationOutcome, SessionGrant, SessionSummary
from sessionkeeper.services.sessions.registry import SessionRegistry, hash_refresh_token

__all__ = [
    "RotationOutcome",
    "SessionGrant",
    "SessionRegistry",
    "SessionSummary",
    "hash_refresh_token",
]
