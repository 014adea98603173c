"""Marshmallow schemas for request validation and response shaping."""

from sessionkeeper.schemas.auth import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    SessionSchema,
    TokenPairSchema,
    UserSchema,
)
from sessionkeeper.schemas.mfa import (
    BackupCodesSchema,
    CodeSchema,
    MfaSetupSchema,
    MfaStatusSchema,
    VerifySchema,
)

__all__ = [
    "BackupCodesSchema",
    "CodeSchema",
    "LoginSchema",
    "LogoutSchema",
    "MfaSetupSchema",
    "MfaStatusSchema",
    "RefreshSchema",
    "SessionSchema",
    "TokenPairSchema",
    "UserSchema",
    "VerifySchema",
]
