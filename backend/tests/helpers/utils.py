"""Tiny helpers shared across test modules."""

from __future__ import annotations

from datetime import datetime

import pyotp


def wrong_totp(totp: pyotp.TOTP, when: datetime, window: int = 1) -> str:
    """Return a six digit code that does not verify at ``when`` within ``window`` steps.

    Parameters
    ----------
    totp: pyotp.TOTP
        Generator bound to the secret under test.
    when: datetime
        Instant the verifier will use.
    window: int
        Accepted drift on each side, in 30 second steps.
    """
    valid = {totp.at(when, offset) for offset in range(-window, window + 1)}
    return next(c for c in ("000000", "111111", "222222", "333333", "444444") if c not in valid)
