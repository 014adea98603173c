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
from sessionkeeper.services.auth.service import AuthService

__all__ = [
    "AuthService",
    "AuthTokenConfig",
    "ClientInfo",
    "LoginIn",
    "LoginOut",
    "RefreshIn",
    "TokenPairOut",
    "UserOut",
    "verify_credentials",
]
