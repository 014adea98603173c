# sessionkeeper/services/mfa/dto.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MfaResult(str, Enum):
    """Outcome of an MFA state transition or verification."""

    OK = "ok"
    INVALID_CODE = "invalid_code"
    NOT_CONFIGURED = "not_configured"
    NOT_ENABLED = "not_enabled"
    ALREADY_ENABLED = "already_enabled"
    USER_NOT_FOUND = "user_not_found"


@dataclass(frozen=True, slots=True)
class MfaSetupOut:
    """
    Enrollment material shown to the user exactly once.

    :param secret: Base32 TOTP secret for manual entry.
    :param provisioning_uri: ``otpauth://`` URI encoded in the QR code.
    :param qr_code: ``data:image/svg+xml;base64,...`` rendering of the URI.
    :param backup_codes: Single-use recovery codes.
    """

    secret: str
    provisioning_uri: str
    qr_code: str
    backup_codes: list[str]

    def __repr__(self) -> str:
        return "MfaSetupOut(<redacted>)"


@dataclass(frozen=True, slots=True)
class MfaStatusOut:
    enabled: bool
    configured: bool
    remaining_backup_codes: int


@dataclass(frozen=True, slots=True)
class BackupCodesOut:
    backup_codes: list[str]

    def __repr__(self) -> str:
        return f"BackupCodesOut(<{len(self.backup_codes)} codes>)"
