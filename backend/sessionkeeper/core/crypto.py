"""Authenticated encryption for MFA material stored on the user record."""

from __future__ import annotations

import secrets
from base64 import b64decode, b64encode
from binascii import Error as BinasciiError

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sessionkeeper.services._shared.errors import MisconfigurationError

NONCE_SIZE = 12
# 12 bytes nonce + 16 bytes GCM tag
MIN_SEALED_LENGTH = 28


class DecryptionError(Exception):
    """Raised when a sealed value is corrupted, truncated or bound to another context."""


class SecretBox:
    """
    AES-256-GCM sealing of short strings.

    The key is supplied by configuration (``MFA_ENCRYPTION_KEY``) and never
    stored next to the ciphertext. Every value is bound to an associated-data
    label such as ``"mfa_secret:<user_id>"`` so ciphertexts cannot be swapped
    between columns or users.

    :param key_hex: 64 hexadecimal characters (32 bytes).
    :raises MisconfigurationError: If the key is missing or malformed.
    """

    def __init__(self, key_hex: str | None) -> None:
        if not key_hex or len(key_hex) != 64:
            raise MisconfigurationError(
                "MFA_ENCRYPTION_KEY must be exactly 64 hex characters (32 bytes)."
            )
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise MisconfigurationError("MFA_ENCRYPTION_KEY must be hexadecimal.") from exc
        self._aead = AESGCM(key)

    def seal(self, plaintext: str, *, aad: str) -> str:
        """Encrypt ``plaintext`` and return ``base64(nonce || ciphertext || tag)``."""
        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), aad.encode("utf-8"))
        return b64encode(nonce + sealed).decode("ascii")

    def open(self, token: str, *, aad: str) -> str:
        """Decrypt a value produced by :meth:`seal` with the same ``aad``."""
        try:
            raw = b64decode(token.encode("ascii"), validate=True)
        except (BinasciiError, ValueError) as exc:
            raise DecryptionError("Sealed value is not valid base64.") from exc
        if len(raw) < MIN_SEALED_LENGTH:
            raise DecryptionError("Sealed value is too short.")
        try:
            plain = self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], aad.encode("utf-8"))
        except InvalidTag as exc:
            raise DecryptionError("Sealed value failed authentication.") from exc
        return plain.decode("utf-8")
