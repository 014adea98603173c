"""Unit tests for the AES-GCM secret box."""

from __future__ import annotations

from base64 import b64decode, b64encode

import pytest
from sessionkeeper.core.crypto import DecryptionError, SecretBox
from sessionkeeper.services._shared.errors import MisconfigurationError

KEY = "ab" * 32


def test_seal_then_open():
    box = SecretBox(KEY)
    sealed = box.seal("JBSWY3DPEHPK3PXP", aad="mfa_secret:u1")

    assert "JBSWY3DPEHPK3PXP" not in sealed
    assert box.open(sealed, aad="mfa_secret:u1") == "JBSWY3DPEHPK3PXP"


def test_nonce_makes_every_seal_distinct():
    box = SecretBox(KEY)
    assert box.seal("same", aad="x") != box.seal("same", aad="x")


def test_open_with_other_label_fails():
    box = SecretBox(KEY)
    sealed = box.seal("secret", aad="mfa_secret:u1")

    with pytest.raises(DecryptionError):
        box.open(sealed, aad="mfa_secret:u2")


def test_open_with_other_key_fails():
    sealed = SecretBox(KEY).seal("secret", aad="x")

    with pytest.raises(DecryptionError):
        SecretBox("cd" * 32).open(sealed, aad="x")


def test_tampered_ciphertext_fails():
    box = SecretBox(KEY)
    raw = bytearray(b64decode(box.seal("secret", aad="x")))
    raw[-1] ^= 0x01

    with pytest.raises(DecryptionError):
        box.open(b64encode(bytes(raw)).decode(), aad="x")


@pytest.mark.parametrize("value", ["not base64!", b64encode(b"short").decode()])
def test_garbage_input_fails(value):
    with pytest.raises(DecryptionError):
        SecretBox(KEY).open(value, aad="x")


@pytest.mark.parametrize("key", [None, "", "ab" * 16, "zz" * 32])
def test_bad_keys_are_misconfiguration(key):
    with pytest.raises(MisconfigurationError):
        SecretBox(key)
