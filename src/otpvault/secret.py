"""Shared-secret codec: base32 normalization, validation and decoding."""

from __future__ import annotations

import base64
import binascii
import re

import pyotp

from otpvault.config import settings
from otpvault.errors import DecodeError

_BASE32_RE = re.compile(r"^[A-Z2-7]+=*$")
_WHITESPACE_RE = re.compile(r"\s+")

# Base32 data lengths (mod 8) that leave a partial final byte; b32decode rejects them.
_DANGLING = {1, 3, 6}


def normalize(raw: str) -> str:
    """Strip all whitespace and upper-case."""
    return _WHITESPACE_RE.sub("", raw).upper()


def validate_secret(secret: str, min_length: int | None = None) -> bool:
    """Check a manually entered secret.

    True iff the normalized string is drawn from ``A-Z2-7`` (optionally
    ``=``-padded) and is at least ``min_length`` characters long. Never raises.
    Scanned secrets are not held to the length floor.
    """
    if min_length is None:
        min_length = settings.min_secret_length
    clean = normalize(secret)
    return bool(_BASE32_RE.match(clean)) and len(clean) >= min_length


def canonical_key(secret: str) -> str:
    """Return the unpadded base32 text that decodes to the secret's bytes.

    Trailing characters that do not complete a byte are dropped, so any
    non-empty string over the alphabet is accepted.
    """
    clean = normalize(secret)
    if not _BASE32_RE.match(clean):
        raise DecodeError("Secret is not valid base32")
    data = clean.rstrip("=")
    if len(data) % 8 in _DANGLING:
        data = data[:-1]
    if not data:
        raise DecodeError("Secret is too short to decode")
    return data


def decode(secret: str) -> bytes:
    """Decode a base32 secret to raw key bytes."""
    data = canonical_key(secret)
    padded = data + "=" * (-len(data) % 8)
    try:
        return base64.b32decode(padded)
    except binascii.Error as e:
        raise DecodeError("Secret is not valid base32") from e


def random_secret(length: int = 32) -> str:
    """Generate a new base32 secret (160 bits at the default length)."""
    return pyotp.random_base32(length=length)
