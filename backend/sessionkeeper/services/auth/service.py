# sessionkeeper/services/auth/service.py
from __future__ import annotations

import logging

from sessionkeeper.core.clock import Clock
from sessionkeeper.services._shared.base import BaseService
from sessionkeeper.services._shared.errors import (
    AccountInactiveError,
    InvalidCredentialsError,
    IpBannedError,
    MfaInvalidCodeError,
    MfaRequiredError,
    ReuseDetectedError,
    SessionNotFoundError,
    TokenExpiredError,
    TokenMalformedError,
    TokenRevokedError,
)
from sessionkeeper.services._shared.ports import IpReputation, RotationResult, UserStore
from sessionkeeper.services.auth.credentials import verify_credentials
from sessionkeeper.services.auth.dto import (
    AuthTokenConfig,
    ClientInfo,
    LoginIn,
    LoginOut,
    RefreshIn,
    TokenPairOut,
    UserOut,
)
from sessionkeeper.services.auth.permissions import permissions_for
from sessionkeeper.services.mfa.dto import MfaResult
from sessionkeeper.services.mfa.manager import MfaManager
from sessionkeeper.services.sessions.dto import SessionSummary
from sessionkeeper.services.sessions.registry import SessionRegistry
from sessionkeeper.services.tokens.issuer import AccessTokenClaims, TokenIssuer, TokenStatus
from sessionkeeper.services.tokens.revocation import RevocationRegistry

log = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Session lifecycle orchestrator (login / refresh / logout).

    Composes the credential verifier, the MFA manager, the session registry,
    the token issuer and the revocation registry. Holds no state of its own.

    Security
    --------
    - Login failures are indistinguishable to the caller and always reported
      to the IP reputation service.
    - Refresh tokens are single-use; replaying a rotated-away token revokes
      every session of the user before :class:`ReuseDetectedError` is raised.
    - An access token is accepted only while its session is active and the
      token itself has not been revoked.
    """

    def __init__(
        self,
        *,
        users: UserStore,
        ip_reputation: IpReputation,
        sessions: SessionRegistry,
        issuer: TokenIssuer,
        revocations: RevocationRegistry,
        mfa: MfaManager,
        token_cfg: AuthTokenConfig,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock=clock)
        self.users = users
        self.ip_reputation = ip_reputation
        self.sessions = sessions
        self.issuer = issuer
        self.revocations = revocations
        self.mfa = mfa
        self.cfg = token_cfg

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn, client: ClientInfo | None = None) -> LoginOut:
        """
        Authenticate credentials (and second factor) and open a session.

        :raises IpBannedError: Client address is banned.
        :raises InvalidCredentialsError: Unknown email, wrong password or inactive account.
        :raises MfaRequiredError: MFA is enabled and no code was supplied.
        :raises MfaInvalidCodeError: The supplied code did not verify.
        """
        client = client or ClientInfo()
        if self.ip_reputation.is_banned(client.ip_address):
            log.warning("Login from banned address", extra={"event": "login_banned"})
            raise IpBannedError()

        user = verify_credentials(self.users, dto.email, dto.password)
        if user is None:
            self.ip_reputation.track_failed_attempt(client.ip_address)
            log.info("Login failed", extra={"event": "login_failed", "ip": client.ip_address})
            raise InvalidCredentialsError()

        if user.mfa_enabled:
            if not dto.totp_code and not dto.backup_code:
                raise MfaRequiredError()
            result = self.mfa.verify(user.id, totp_code=dto.totp_code, backup_code=dto.backup_code)
            if result is not MfaResult.OK:
                self.ip_reputation.track_failed_attempt(client.ip_address)
                raise MfaInvalidCodeError()

        self.users.touch_last_login(user.id, self.now_utc())
        grant = self.sessions.create_session(
            user_id=user.id, user_agent=client.user_agent, ip_address=client.ip_address
        )
        access = self.issuer.issue_access(
            user_id=user.id, email=user.email, role=user.role, session_id=grant.session_id
        )
        log.info(
            "Login succeeded",
            extra={"event": "login", "user_id": user.id, "session_id": grant.session_id},
        )
        return LoginOut(
            tokens=self._pair(access, grant.refresh_token, grant.session_id),
            user=UserOut(
                id=user.id,
                email=user.email,
                role=user.role,
                permissions=permissions_for(user.role),
                mfa_enabled=user.mfa_enabled,
            ),
        )

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn, client: ClientInfo | None = None) -> TokenPairOut:
        """
        Rotate a refresh token and emit a new token pair on the same session.

        :raises ReuseDetectedError: A rotated-away token was replayed; all
            sessions of the user have been revoked.
        :raises TokenExpiredError: Unknown, expired or revoked session.
        :raises AccountInactiveError: The owner was deactivated or deleted.
        """
        client = client or ClientInfo()
        outcome = self.sessions.rotate(
            dto.refresh_token, user_agent=client.user_agent, ip_address=client.ip_address
        )

        if outcome.result is RotationResult.REUSED:
            # Incident: someone replayed a consumed refresh token → kill switch
            if outcome.user_id is not None:
                self.sessions.invalidate_all_user_sessions(outcome.user_id)
            raise ReuseDetectedError()

        if outcome.result is not RotationResult.OK or outcome.grant is None:
            # NOT_FOUND / EXPIRED → ask for sign-in
            raise TokenExpiredError()

        grant = outcome.grant
        user = self.users.find_by_id(outcome.user_id or "")
        if user is None or not user.is_active:
            self.sessions.invalidate_session(grant.session_id)
            raise AccountInactiveError()

        access = self.issuer.issue_access(
            user_id=user.id, email=user.email, role=user.role, session_id=grant.session_id
        )
        log.info(
            "Session refreshed",
            extra={"event": "refresh", "user_id": user.id, "session_id": grant.session_id},
        )
        return self._pair(access, grant.refresh_token, grant.session_id)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, access_token: str, session_id: str | None = None) -> None:
        """
        Revoke ``access_token`` and end a session.

        Without ``session_id`` the session embedded in the token ends. With
        one, that session ends only if it belongs to the token's user.

        :raises SessionNotFoundError: ``session_id`` is not an active session of the user.
        """
        claims = self.authenticate(access_token)
        self.revocations.revoke(access_token)

        if session_id is None or session_id == claims.session_id:
            self.sessions.invalidate_session(claims.session_id)
            return
        if not self.sessions.invalidate_user_session(claims.subject, session_id):
            raise SessionNotFoundError()

    def logout_all(self, user_id: str, access_token: str | None = None) -> int:
        """
        End every session of ``user_id``.

        :param access_token: Also revoked when given, so the caller's own
            token stops working immediately.
        :returns: Number of sessions that were active.
        """
        if access_token:
            self.revocations.revoke(access_token)
        return self.sessions.invalidate_all_user_sessions(user_id)

    def list_sessions(self, user_id: str) -> list[SessionSummary]:
        return self.sessions.list_user_sessions(user_id)

    # ------------------------------------------------------------------ #
    # Request-time verification
    # ------------------------------------------------------------------ #

    def authenticate(self, access_token: str) -> AccessTokenClaims:
        """
        Accept an access token only if signed, unexpired, unrevoked and backed
        by an active session.

        :raises TokenExpiredError: Token expired or its session ended.
        :raises TokenMalformedError: Bad signature, shape or not-before.
        :raises TokenRevokedError: Token was revoked by logout.
        """
        verification = self.issuer.verify(access_token)
        if verification.status is TokenStatus.EXPIRED:
            raise TokenExpiredError()
        if not verification.valid or verification.claims is None:
            raise TokenMalformedError()
        if self.revocations.is_revoked(access_token):
            raise TokenRevokedError()
        if not self.sessions.is_session_valid(verification.claims.session_id):
            raise TokenExpiredError()
        return verification.claims

    def profile(self, claims: AccessTokenClaims) -> UserOut:
        user = self.users.find_by_id(claims.subject)
        if user is None or not user.is_active:
            raise AccountInactiveError()
        return UserOut(
            id=user.id,
            email=user.email,
            role=user.role,
            permissions=permissions_for(user.role),
            mfa_enabled=user.mfa_enabled,
        )

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def _pair(self, access: str, refresh: str, session_id: str) -> TokenPairOut:
        return TokenPairOut(
            access_token=access,
            refresh_token=refresh,
            session_id=session_id,
            expires_in=int(self.cfg.access_expires.total_seconds()),
        )
