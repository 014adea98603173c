"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Development-only key material; never valid in production.
_DEV_MFA_KEY: Final[str] = "0" * 64

load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    JWT_SECRET_KEY: str | None
        Signing key for access tokens. A missing key is a fatal
        misconfiguration reported on the first issuance attempt.
    ACCESS_TOKEN_TTL_MINUTES: int
        Lifetime of access tokens.
    REFRESH_TOKEN_TTL_DAYS: int
        Sliding lifetime of a session; bumped on every rotation.
    SESSION_BACKEND: str
        ``"redis"`` (default) or ``"memory"`` for single-process setups.
    REDIS_URL: str | None
        Connection string for the session and revocation store.
    STORE_TIMEOUT_MS: int
        Socket timeout applied to every store call.
    MAX_SESSIONS_PER_USER: int
        Active session cap; the oldest session is revoked beyond it.
    MFA_ENCRYPTION_KEY: str | None
        64 hex characters (AES-256) used to seal TOTP secrets and backup codes.
    MFA_ISSUER: str
        Issuer label shown by authenticator apps.
    MFA_VALID_WINDOW: int
        Accepted TOTP clock drift, in 30 second steps.
    MFA_BACKUP_CODE_COUNT: int
        Number of backup codes generated per setup/regeneration.
    IP_BAN_THRESHOLD: int
        Failed logins tolerated per IP within ``IP_BAN_WINDOW_SECONDS``.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    ACCESS_TOKEN_TTL_MINUTES = env_int("ACCESS_TOKEN_TTL_MINUTES", 15)
    REFRESH_TOKEN_TTL_DAYS = env_int("REFRESH_TOKEN_TTL_DAYS", 30)
    JWT_DECODE_LEEWAY = env_int("JWT_DECODE_LEEWAY", 0)

    # Session / revocation store
    SESSION_BACKEND = os.getenv("SESSION_BACKEND", "redis")
    REDIS_URL = os.getenv("REDIS_URL")
    STORE_TIMEOUT_MS = env_int("STORE_TIMEOUT_MS", 300)
    MAX_SESSIONS_PER_USER = env_int("MAX_SESSIONS_PER_USER", 5)

    # MFA
    MFA_ENCRYPTION_KEY = os.getenv("MFA_ENCRYPTION_KEY")
    MFA_ISSUER = os.getenv("MFA_ISSUER", "sessionkeeper")
    MFA_VALID_WINDOW = env_int("MFA_VALID_WINDOW", 1)
    MFA_BACKUP_CODE_COUNT = env_int("MFA_BACKUP_CODE_COUNT", 10)

    # IP reputation
    IP_BAN_THRESHOLD = env_int("IP_BAN_THRESHOLD", 10)
    IP_BAN_WINDOW_SECONDS = env_int("IP_BAN_WINDOW_SECONDS", 900)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Falls back to throwaway signing and encryption keys so the service boots
    without a ``.env`` file, and to the in-memory store when no Redis URL is set.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-only-jwt-signing-key-change-me")
    MFA_ENCRYPTION_KEY = os.getenv("MFA_ENCRYPTION_KEY", _DEV_MFA_KEY)
    SESSION_BACKEND = os.getenv("SESSION_BACKEND", "redis" if BaseConfig.REDIS_URL else "memory")
    CORS_MAX_AGE = 600


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Uses an in-memory SQLite database and the in-memory session store.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-jwt-signing-key-with-enough-entropy"
    MFA_ENCRYPTION_KEY = "ab" * 32
    SESSION_BACKEND = "memory"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    PROPAGATE_EXCEPTIONS = True
    USE_PROXYFIX = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Signing and encryption keys have no defaults here; they must come from the
    environment or a secrets manager.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
