# tests/unit/services/test_auth_service.py
"""
Unit tests for the login / refresh / logout orchestrator.

The service is wired to in-memory stores and the real Flask-JWT-Extended
token provider, so an app context is required.
"""

from __future__ import annotations

import threading
from datetime import timedelta

import pyotp
import pytest
from sessionkeeper.core.crypto import SecretBox
from sessionkeeper.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from sessionkeeper.infra.redis.redis_session_store import RedisSessionStore
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
from sessionkeeper.services._shared.ports import (
    InMemoryIpReputation,
    InMemoryRevocationStore,
    InMemorySessionStore,
    InMemoryUserStore,
)
from sessionkeeper.services.auth.dto import AuthTokenConfig, ClientInfo, LoginIn, RefreshIn
from sessionkeeper.services.auth.service import AuthService
from sessionkeeper.services.mfa.manager import MfaManager
from sessionkeeper.services.sessions.registry import SessionRegistry
from sessionkeeper.services.tokens.issuer import TokenIssuer
from sessionkeeper.services.tokens.revocation import RevocationRegistry

from tests.helpers.stores import InterleavingRedis, LockstepSessionStore
from tests.helpers.utils import wrong_totp

PASSWORD = "Passw0rd!"
CLIENT = ClientInfo(user_agent="pytest/1", ip_address="203.0.113.7")


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def users() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture()
def make_service(app, users, clock):
    """Build an AuthService wired to in-memory doubles."""

    def _make(
        *, ban_threshold: int = 10, max_sessions: int = 5, session_store=None
    ) -> AuthService:
        cfg = AuthTokenConfig(
            access_expires=timedelta(minutes=15), refresh_expires=timedelta(days=30)
        )
        issuer = TokenIssuer(provider=JWTTokenProvider(), access_ttl=cfg.access_expires)
        return AuthService(
            users=users,
            ip_reputation=InMemoryIpReputation(threshold=ban_threshold, clock=clock),
            sessions=SessionRegistry(
                store=InMemorySessionStore() if session_store is None else session_store,
                refresh_ttl=cfg.refresh_expires,
                max_sessions_per_user=max_sessions,
                clock=clock,
            ),
            issuer=issuer,
            revocations=RevocationRegistry(
                store=InMemoryRevocationStore(clock=clock), issuer=issuer, clock=clock
            ),
            mfa=MfaManager(users=users, box=SecretBox("ab" * 32), clock=clock),
            token_cfg=cfg,
            clock=clock,
        )

    return _make


@pytest.fixture()
def service(make_service) -> AuthService:
    return make_service()


@pytest.fixture()
def user(users):
    return users.add("alice@example.com", PASSWORD, role="manager")


def _login(service: AuthService, email: str = "alice@example.com", **extra):
    return service.login(LoginIn(email=email, password=PASSWORD, **extra), CLIENT)


def _logins(service: AuthService, clock, n: int):
    out = []
    for _ in range(n):
        out.append(_login(service))
        clock.advance(seconds=1)
    return out


# -------------------------------- Login ----------------------------------- #
def test_login_issues_pair_and_opens_session(service, users, user, clock):
    out = _login(service)

    assert out.tokens.expires_in == 900
    assert out.user.id == user.id
    assert out.user.role == "manager"
    assert "orders:write" in out.user.permissions
    assert out.user.mfa_enabled is False

    claims = service.authenticate(out.tokens.access_token)
    assert claims.subject == user.id
    assert claims.session_id == out.tokens.session_id

    [summary] = service.list_sessions(user.id)
    assert summary.session_id == out.tokens.session_id
    assert summary.user_agent == "pytest/1"
    assert summary.ip_address == "203.0.113.7"
    assert users.find_by_id(user.id).last_login_at == clock()


def test_login_failures_share_one_error(service, users, user):
    users.add("inactive@example.com", PASSWORD, is_active=False)

    errors = []
    for email, password in [
        ("alice@example.com", "wrong"),
        ("nobody@example.com", PASSWORD),
        ("inactive@example.com", PASSWORD),
    ]:
        with pytest.raises(InvalidCredentialsError) as exc_info:
            service.login(LoginIn(email=email, password=password), CLIENT)
        errors.append((exc_info.value.code, exc_info.value.message))

    assert len(set(errors)) == 1


def test_banned_address_is_refused_even_with_valid_password(make_service, user):
    service = make_service(ban_threshold=3)
    for _ in range(3):
        with pytest.raises(InvalidCredentialsError):
            service.login(LoginIn(email="alice@example.com", password="nope"), CLIENT)

    with pytest.raises(IpBannedError):
        _login(service)

    # other addresses are unaffected
    other = ClientInfo(user_agent="x", ip_address="198.51.100.1")
    assert service.login(LoginIn(email="alice@example.com", password=PASSWORD), other)


# --------------------------------- MFA ------------------------------------ #
def test_login_with_mfa(service, users, user, clock):
    _, setup = service.mfa.setup(user.id)
    totp = pyotp.TOTP(setup.secret)
    service.mfa.enable(user.id, totp.at(clock()))

    with pytest.raises(MfaRequiredError):
        _login(service)
    with pytest.raises(MfaInvalidCodeError):
        _login(service, totp_code=wrong_totp(totp, clock()))

    out = _login(service, totp_code=totp.at(clock()))
    assert out.user.mfa_enabled is True

    assert _login(service, backup_code=setup.backup_codes[0])
    with pytest.raises(MfaInvalidCodeError):
        _login(service, backup_code=setup.backup_codes[0])


def test_failed_mfa_counts_towards_ip_ban(make_service, users, user, clock):
    service = make_service(ban_threshold=2)
    _, setup = service.mfa.setup(user.id)
    totp = pyotp.TOTP(setup.secret)
    service.mfa.enable(user.id, totp.at(clock()))
    bad = wrong_totp(totp, clock())

    for _ in range(2):
        with pytest.raises(MfaInvalidCodeError):
            _login(service, totp_code=bad)

    with pytest.raises(IpBannedError):
        _login(service, totp_code=totp.at(clock()))


# ------------------------------- Refresh ---------------------------------- #
def test_refresh_rotates_within_the_same_session(service, user):
    first = _login(service).tokens

    second = service.refresh(RefreshIn(first.refresh_token), CLIENT)

    assert second.session_id == first.session_id
    assert second.refresh_token != first.refresh_token
    assert service.authenticate(second.access_token).session_id == first.session_id


def test_refresh_reuse_revokes_every_session(service, user, clock):
    t1, t2, t3 = (o.tokens for o in _logins(service, clock, 3))
    r2 = service.refresh(RefreshIn(t1.refresh_token), CLIENT)

    with pytest.raises(ReuseDetectedError) as exc_info:
        service.refresh(RefreshIn(t1.refresh_token), CLIENT)

    assert exc_info.value.code == "token_expired"
    assert service.list_sessions(user.id) == []
    for token in (r2.access_token, t2.access_token, t3.access_token):
        with pytest.raises(TokenExpiredError):
            service.authenticate(token)
    with pytest.raises(TokenExpiredError):
        service.refresh(RefreshIn(r2.refresh_token), CLIENT)


def test_concurrent_refresh_has_one_winner(app, make_service, user):
    """Callers racing on one refresh token: one fresh pair, the rest expired."""
    service = make_service(session_store=LockstepSessionStore(parties=4))
    tokens = _login(service).tokens
    successes, failures = [], []

    def worker() -> None:
        with app.app_context():
            try:
                successes.append(service.refresh(RefreshIn(tokens.refresh_token), CLIENT))
            except TokenExpiredError as exc:
                failures.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == 1
    assert len(failures) == 3
    assert not any(isinstance(f, ReuseDetectedError) for f in failures)

    [winner] = successes
    assert service.authenticate(winner.access_token).session_id == tokens.session_id
    rotated = service.refresh(RefreshIn(winner.refresh_token), CLIENT)
    assert rotated.session_id == tokens.session_id


def test_refresh_race_over_redis_keeps_the_winner(make_service, user, fake_redis):
    client = InterleavingRedis(fake_redis)
    service = make_service(session_store=RedisSessionStore(r=client))
    tokens = _login(service).tokens
    winners = []
    client.arm(
        lambda: winners.append(service.refresh(RefreshIn(tokens.refresh_token), CLIENT))
    )

    with pytest.raises(TokenExpiredError) as exc_info:
        service.refresh(RefreshIn(tokens.refresh_token), CLIENT)

    assert not isinstance(exc_info.value, ReuseDetectedError)
    [winner] = winners
    assert service.authenticate(winner.access_token).session_id == tokens.session_id
    rotated = service.refresh(RefreshIn(winner.refresh_token), CLIENT)
    assert rotated.session_id == tokens.session_id


def test_refresh_unknown_or_expired_token(service, user, clock):
    with pytest.raises(TokenExpiredError):
        service.refresh(RefreshIn("never-issued"), CLIENT)

    tokens = _login(service).tokens
    clock.advance(days=31)
    with pytest.raises(TokenExpiredError):
        service.refresh(RefreshIn(tokens.refresh_token), CLIENT)


def test_refresh_for_deactivated_account(service, users, user):
    tokens = _login(service).tokens
    users.set_active(user.id, False)

    with pytest.raises(AccountInactiveError):
        service.refresh(RefreshIn(tokens.refresh_token), CLIENT)
    assert service.sessions.is_session_valid(tokens.session_id) is False


# -------------------------------- Logout ---------------------------------- #
def test_logout_revokes_token_and_ends_session(service, user, clock):
    mine, other = (o.tokens for o in _logins(service, clock, 2))

    service.logout(mine.access_token)

    with pytest.raises(TokenRevokedError):
        service.authenticate(mine.access_token)
    with pytest.raises(TokenExpiredError):
        service.refresh(RefreshIn(mine.refresh_token), CLIENT)
    assert service.authenticate(other.access_token).session_id == other.session_id


def test_logout_of_another_own_session(service, user, clock):
    current, other = (o.tokens for o in _logins(service, clock, 2))

    service.logout(current.access_token, session_id=other.session_id)

    assert service.sessions.is_session_valid(other.session_id) is False
    assert service.sessions.is_session_valid(current.session_id) is True


def test_logout_of_foreign_session_is_refused(service, users, user, clock):
    users.add("bob@example.com", PASSWORD)
    mine = _login(service).tokens
    bobs = _login(service, email="bob@example.com").tokens

    with pytest.raises(SessionNotFoundError):
        service.logout(mine.access_token, session_id=bobs.session_id)
    assert service.sessions.is_session_valid(bobs.session_id) is True


def test_logout_all(service, user, clock):
    outs = _logins(service, clock, 3)

    count = service.logout_all(user.id, access_token=outs[0].tokens.access_token)

    assert count == 3
    with pytest.raises(TokenRevokedError):
        service.authenticate(outs[0].tokens.access_token)
    for out in outs[1:]:
        with pytest.raises(TokenExpiredError):
            service.authenticate(out.tokens.access_token)


# ---------------------------- Authentication ------------------------------ #
def test_authenticate_rejects_bad_and_expired_tokens(service, user):
    tokens = _login(service).tokens

    with pytest.raises(TokenMalformedError):
        service.authenticate("not-a-token")

    expired = service.issuer.provider.create_access_token(
        identity=user.id,
        additional_claims={"sid": tokens.session_id},
        expires_delta=timedelta(seconds=-5),
    )
    with pytest.raises(TokenExpiredError):
        service.authenticate(expired)


def test_session_cap_invalidates_oldest_access_token(make_service, user, clock):
    service = make_service(max_sessions=2)
    first, second, third = (o.tokens for o in _logins(service, clock, 3))

    with pytest.raises(TokenExpiredError):
        service.authenticate(first.access_token)
    assert service.authenticate(second.access_token)
    assert service.authenticate(third.access_token)


def test_profile(service, users, user):
    claims = service.authenticate(_login(service).tokens.access_token)

    profile = service.profile(claims)
    assert profile.email == "alice@example.com"
    assert profile.permissions

    users.set_active(user.id, False)
    with pytest.raises(AccountInactiveError):
        service.profile(claims)
