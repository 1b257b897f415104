"""HOTP/TOTP code generation (RFC 4226 / RFC 6238).

The dynamic-truncation arithmetic is delegated to pyotp; this module decodes
and validates the secret first so a bad secret surfaces as DecodeError rather
than a binascii failure, and never as a plausible-looking code.
"""

from __future__ import annotations

import logging
import time

import pyotp
from pyotp.utils import strings_equal

from otpvault.errors import DecodeError
from otpvault.models import Algorithm, ParsedCredential
from otpvault.secret import canonical_key

logger = logging.getLogger(__name__)

PLACEHOLDER_CHAR = "-"


def generate(secret: str, algorithm: Algorithm | str, digits: int, counter: int) -> str:
    """Compute the HOTP value for ``counter``, zero-padded to ``digits`` characters."""
    if not 1 <= digits <= 10:
        raise ValueError("digits must be between 1 and 10")
    if counter < 0:
        raise ValueError("counter must be non-negative")
    key = canonical_key(secret)
    return pyotp.HOTP(key, digits=digits, digest=Algorithm(algorithm).digest).at(counter)


def current_counter(period: int, now: float | None = None) -> int:
    """TOTP time step: floor(now / period), ``now`` in epoch seconds."""
    if period < 1:
        raise ValueError("period must be positive")
    if now is None:
        now = time.time()
    return int(now // period)


def generate_totp(account: ParsedCredential, now: float | None = None) -> str:
    """Current TOTP code for a credential."""
    return generate(
        account.secret,
        account.algorithm,
        account.digits,
        current_counter(account.period, now),
    )


def placeholder(digits: int) -> str:
    return PLACEHOLDER_CHAR * digits


def display_code(account: ParsedCredential, now: float | None = None) -> str:
    """Like generate_totp, but a bad secret yields a visibly invalid filler."""
    try:
        return generate_totp(account, now)
    except DecodeError:
        logger.warning(
            "Cannot generate code for %s (%s): secret does not decode",
            getattr(account, "id", "<unsaved>"),
            account.issuer,
        )
        return placeholder(account.digits)


def format_code(code: str) -> str:
    """Split a code into two groups for reading, e.g. "123456" -> "123 456"."""
    if len(code) < 4:
        return code
    half = len(code) // 2
    return f"{code[:half]} {code[half:]}"


def verify(account: ParsedCredential, code: str, now: float | None = None, window: int = 1) -> bool:
    """Check ``code`` against the time steps within ±``window`` of now."""
    if window < 0:
        raise ValueError("window must be non-negative")
    code = code.replace(" ", "")
    counter = current_counter(account.period, now)
    for step in range(counter - window, counter + window + 1):
        if step < 0:
            continue
        if strings_equal(code, generate(account.secret, account.algorithm, account.digits, step)):
            return True
    return False
