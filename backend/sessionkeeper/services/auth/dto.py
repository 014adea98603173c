# sessionkeeper/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email (normalized).
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param totp_code: Optional 6-digit TOTP code when MFA is enabled.
    :type totp_code: str | None
    :param backup_code: Optional single-use backup code when MFA is enabled.
    :type backup_code: str | None
    """

    email: str
    password: str
    totp_code: str | None = None
    backup_code: str | None = None

    def __repr__(self) -> str:
        return f"LoginIn(email={self.email!r}, password=<redacted>)"


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh token.
    :type refresh_token: str
    """

    refresh_token: str

    def __repr__(self) -> str:
        return "RefreshIn(refresh_token=<redacted>)"


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """
    Request metadata recorded on the session.

    :param user_agent: Raw ``User-Agent`` header.
    :param ip_address: Client address after proxy resolution.
    """

    user_agent: str = "unknown"
    ip_address: str = "unknown"


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserOut:
    """Public view of the authenticated user."""

    id: str
    email: str
    role: str
    permissions: list[str] = field(default_factory=list)
    mfa_enabled: bool = False


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Signed access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh token (shown once).
    :type refresh_token: str
    :param session_id: Session the pair belongs to.
    :type session_id: str
    :param expires_in: Access token lifetime in seconds.
    :type expires_in: int
    """

    access_token: str
    refresh_token: str
    session_id: str
    expires_in: int

    def __repr__(self) -> str:
        return f"TokenPairOut(session_id={self.session_id!r}, tokens=<redacted>)"


@dataclass(frozen=True, slots=True)
class LoginOut:
    """Token pair plus the user it was issued to."""

    tokens: TokenPairOut
    user: UserOut


# ------------------------ Config DTO ------------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token emission configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh token lifetime.
    :type refresh_expires: timedelta
    """

    access_expires: timedelta
    refresh_expires: timedelta
