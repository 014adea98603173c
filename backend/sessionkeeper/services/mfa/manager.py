"""TOTP enrollment and verification state machine with backup codes."""

from __future__ import annotations

import hmac
import json
import logging
import secrets
from base64 import b64encode

import pyotp
import qrcode
from qrcode.image.svg import SvgPathImage

from sessionkeeper.core.clock import Clock, utcnow
from sessionkeeper.core.crypto import DecryptionError, SecretBox
from sessionkeeper.services._shared.errors import MisconfigurationError
from sessionkeeper.services._shared.ports import UserRecord, UserStore
from sessionkeeper.services.mfa.dto import BackupCodesOut, MfaResult, MfaSetupOut, MfaStatusOut

log = logging.getLogger(__name__)


def normalize_code(code: str | None) -> str:
    """Strip separators and whitespace; backup codes compare case-insensitively."""
    if not code:
        return ""
    return "".join(ch for ch in code if ch.isalnum()).upper()


class MfaManager:
    """
    Own the MFA lifecycle stored on the user record.

    States
    ------
    ``Unconfigured``
        No secret stored.
    ``PendingVerification``
        Secret and backup codes stored, ``mfa_enabled`` is ``False``.
    ``Enabled``
        A TOTP code confirmed the secret; login requires a second factor.

    Every method reports failures through :class:`MfaResult` instead of
    raising; :class:`~sessionkeeper.services.mfa.service.MfaService` turns
    them into service errors.

    :param users: User store port.
    :param box: Authenticated encryption for the secret and the backup codes.
    :param issuer: Issuer label shown by authenticator apps.
    :param valid_window: Accepted drift in 30-second TOTP steps on each side.
    :param backup_code_count: Codes generated per setup or regeneration.
    """

    def __init__(
        self,
        *,
        users: UserStore,
        box: SecretBox,
        issuer: str = "sessionkeeper",
        valid_window: int = 1,
        backup_code_count: int = 10,
        clock: Clock | None = None,
    ) -> None:
        self.users = users
        self.box = box
        self.issuer = issuer
        self.valid_window = valid_window
        self.backup_code_count = backup_code_count
        self.clock = clock or utcnow

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def setup(self, user_id: str) -> tuple[MfaResult, MfaSetupOut | None]:
        """
        Generate a fresh secret and backup codes (Unconfigured/Pending → Pending).

        Repeating setup before enabling replaces the pending secret.
        """
        user = self.users.find_by_id(user_id)
        if user is None:
            return MfaResult.USER_NOT_FOUND, None
        if user.mfa_enabled:
            return MfaResult.ALREADY_ENABLED, None

        secret = pyotp.random_base32()
        codes = self._generate_backup_codes()
        self.users.update_mfa_fields(
            user_id,
            enabled=False,
            secret=self._seal_secret(user_id, secret),
            backup_codes=self._seal_codes(user_id, codes),
            enabled_at=None,
        )
        uri = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=self.issuer)
        log.info("MFA setup started", extra={"event": "mfa_setup", "user_id": user_id})
        return MfaResult.OK, MfaSetupOut(
            secret=secret,
            provisioning_uri=uri,
            qr_code=self._qr_data_uri(uri),
            backup_codes=codes,
        )

    def enable(self, user_id: str, code: str) -> MfaResult:
        """Confirm the pending secret with a TOTP code (Pending → Enabled)."""
        user = self.users.find_by_id(user_id)
        if user is None:
            return MfaResult.USER_NOT_FOUND
        if user.mfa_enabled:
            return MfaResult.ALREADY_ENABLED
        if not user.mfa_secret:
            return MfaResult.NOT_CONFIGURED
        if not self._check_totp(user, code):
            return MfaResult.INVALID_CODE

        self.users.update_mfa_fields(
            user_id,
            enabled=True,
            secret=user.mfa_secret,
            backup_codes=user.mfa_backup_codes,
            enabled_at=self.clock(),
        )
        log.info("MFA enabled", extra={"event": "mfa_enabled", "user_id": user_id})
        return MfaResult.OK

    def disable(self, user_id: str, code: str) -> MfaResult:
        """
        Clear the secret and backup codes (any state → Unconfigured).

        Only a TOTP code is accepted; backup codes cannot turn MFA off.
        """
        user = self.users.find_by_id(user_id)
        if user is None:
            return MfaResult.USER_NOT_FOUND
        if not user.mfa_secret:
            return MfaResult.NOT_CONFIGURED
        if not self._check_totp(user, code):
            return MfaResult.INVALID_CODE

        self.users.update_mfa_fields(
            user_id, enabled=False, secret=None, backup_codes=None, enabled_at=None
        )
        log.info("MFA disabled", extra={"event": "mfa_disabled", "user_id": user_id})
        return MfaResult.OK

    def verify(
        self,
        user_id: str,
        *,
        totp_code: str | None = None,
        backup_code: str | None = None,
    ) -> MfaResult:
        """
        Check a second factor for an Enabled user.

        TOTP is tried first; the backup code only when TOTP is absent or
        wrong. A matching backup code is removed before ``OK`` is returned.
        """
        user = self.users.find_by_id(user_id)
        if user is None:
            return MfaResult.USER_NOT_FOUND
        if not user.mfa_enabled or not user.mfa_secret:
            return MfaResult.NOT_ENABLED

        if totp_code and self._check_totp(user, totp_code):
            return MfaResult.OK
        if backup_code and self._consume_backup_code(user, backup_code):
            log.info("Backup code consumed", extra={"event": "mfa_backup_used", "user_id": user_id})
            return MfaResult.OK
        return MfaResult.INVALID_CODE

    def regenerate_backup_codes(
        self, user_id: str, code: str
    ) -> tuple[MfaResult, BackupCodesOut | None]:
        """Replace the whole backup code set; requires a fresh TOTP code."""
        user = self.users.find_by_id(user_id)
        if user is None:
            return MfaResult.USER_NOT_FOUND, None
        if not user.mfa_enabled or not user.mfa_secret:
            return MfaResult.NOT_ENABLED, None
        if not self._check_totp(user, code):
            return MfaResult.INVALID_CODE, None

        codes = self._generate_backup_codes()
        self.users.update_mfa_fields(
            user_id,
            enabled=True,
            secret=user.mfa_secret,
            backup_codes=self._seal_codes(user_id, codes),
            enabled_at=user.mfa_enabled_at,
        )
        log.info("Backup codes regenerated", extra={"event": "mfa_codes", "user_id": user_id})
        return MfaResult.OK, BackupCodesOut(codes)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def status(self, user_id: str) -> MfaStatusOut | None:
        user = self.users.find_by_id(user_id)
        if user is None:
            return None
        remaining = len(self._open_codes(user)) if user.mfa_backup_codes else 0
        return MfaStatusOut(
            enabled=bool(user.mfa_enabled),
            configured=bool(user.mfa_secret),
            remaining_backup_codes=remaining,
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _generate_backup_codes(self) -> list[str]:
        return [secrets.token_hex(4).upper() for _ in range(self.backup_code_count)]

    def _check_totp(self, user: UserRecord, code: str | None) -> bool:
        candidate = normalize_code(code)
        if len(candidate) != 6 or not candidate.isdigit():
            return False
        secret = self._open(user.mfa_secret or "", aad=f"mfa_secret:{user.id}")
        return pyotp.TOTP(secret).verify(
            candidate, for_time=self.clock(), valid_window=self.valid_window
        )

    def _consume_backup_code(self, user: UserRecord, code: str) -> bool:
        candidate = normalize_code(code)
        if not candidate:
            return False
        remaining = self._open_codes(user)
        match = None
        # scan every code so timing does not reveal the position of a match
        for stored in remaining:
            if hmac.compare_digest(stored, candidate):
                match = stored
        if match is None:
            return False
        remaining.remove(match)
        self.users.update_mfa_fields(
            user.id,
            enabled=user.mfa_enabled,
            secret=user.mfa_secret,
            backup_codes=self._seal_codes(user.id, remaining),
            enabled_at=user.mfa_enabled_at,
        )
        return True

    def _seal_secret(self, user_id: str, secret: str) -> str:
        return self.box.seal(secret, aad=f"mfa_secret:{user_id}")

    def _seal_codes(self, user_id: str, codes: list[str]) -> str:
        return self.box.seal(json.dumps(codes), aad=f"mfa_backup_codes:{user_id}")

    def _open_codes(self, user: UserRecord) -> list[str]:
        if not user.mfa_backup_codes:
            return []
        raw = self._open(user.mfa_backup_codes, aad=f"mfa_backup_codes:{user.id}")
        return [str(c) for c in json.loads(raw)]

    def _open(self, sealed: str, *, aad: str) -> str:
        try:
            return self.box.open(sealed, aad=aad)
        except DecryptionError as exc:
            log.critical("Stored MFA material cannot be decrypted", extra={"event": "mfa_decrypt"})
            raise MisconfigurationError(
                "MFA material does not decrypt with the configured MFA_ENCRYPTION_KEY."
            ) from exc

    @staticmethod
    def _qr_data_uri(uri: str) -> str:
        img = qrcode.make(uri, image_factory=SvgPathImage)
        return "data:image/svg+xml;base64," + b64encode(img.to_string()).decode("ascii")
