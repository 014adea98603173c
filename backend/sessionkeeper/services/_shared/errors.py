"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They serve as stable contracts between the stores,
the components and the application services.

The translation to HTTP responses (RFC 7807) is handled by
``sessionkeeper/core/errors.py`` via ``BaseService.translate_exceptions()``.

Every authentication failure carries a stable, machine-consumable ``code`` and
a suggested HTTP ``status``. Messages are safe to show to clients and never
reveal which part of a credential was wrong.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores or components.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


class MisconfigurationError(RuntimeError):
    """
    Raised when a required secret or setting is missing or malformed.

    This is a fatal deployment error, not a request error: it is never retried
    and is rendered as a generic HTTP 500.
    """


# --------------------------------------------------------------------------- #
# Generic errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in a store.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a business rule conflict occurs (e.g. MFA already enabled).

    :param entity: Entity name (e.g., "MFA").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


# --------------------------------------------------------------------------- #
# Authentication errors
# --------------------------------------------------------------------------- #


class AuthError(ServiceError):
    """
    Base class for authentication and session failures.

    :param message: Client-safe message. Defaults to the class ``default_message``.
    """

    code = "unauthorized"
    status = 401
    default_message = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    """Unknown email, wrong password or inactive account during login."""

    code = "invalid_credentials"
    default_message = "Invalid email or password."


class AccountInactiveError(AuthError):
    """The account behind an otherwise valid session has been deactivated."""

    code = "account_inactive"
    default_message = "Account is inactive."


class MfaRequiredError(AuthError):
    """Login needs a second factor and none was supplied."""

    code = "mfa_required"
    default_message = "Multi-factor authentication code required."


class MfaInvalidCodeError(AuthError):
    """A supplied TOTP or backup code did not verify."""

    code = "mfa_invalid_code"
    default_message = "Invalid authentication code."


class TokenExpiredError(AuthError):
    """Access or refresh token is expired, revoked at the session level or unknown."""

    code = "token_expired"
    default_message = "Token has expired. Please sign in again."


class ReuseDetectedError(TokenExpiredError):
    """
    A rotated-away refresh token was presented again.

    All sessions of the user have already been revoked when this is raised.
    The public ``code`` is the same as :class:`TokenExpiredError` so clients
    cannot tell the two apart.
    """


class TokenMalformedError(AuthError):
    """Token could not be decoded, has a bad signature or is not yet valid."""

    code = "token_malformed"
    default_message = "Token is invalid."


class TokenRevokedError(AuthError):
    """Access token was explicitly revoked (logout)."""

    code = "token_revoked"
    default_message = "Token has been revoked."


class SessionNotFoundError(AuthError):
    """The session referenced by a token or request does not exist or is inactive."""

    code = "session_not_found"
    status = 404
    default_message = "Session not found."


class IpBannedError(AuthError):
    """The client address is currently banned by the IP reputation service."""

    code = "ip_banned"
    status = 403
    default_message = "Too many failed attempts from this address."


class StoreUnavailableError(ServiceError):
    """
    The key-value store did not answer within ``STORE_TIMEOUT_MS``.

    Never retried here; rendered as HTTP 503.
    """

    def __init__(self, message: str = "Session store unavailable.") -> None:
        super().__init__(message)
