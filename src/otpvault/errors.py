"""Error kinds raised by the core.

All of these are recoverable by the caller; none should terminate the process.
Messages never include secret material.
"""

from __future__ import annotations


class OTPVaultError(Exception):
    """Base class for every error the core signals."""


class DecodeError(OTPVaultError):
    """Secret is not valid base32 (or fails the manual-entry length floor)."""


class ParseError(OTPVaultError):
    """Provisioning URI is malformed, has the wrong scheme/type, or lacks a secret."""


class ValidationError(OTPVaultError):
    """A manual-entry, update or bundle field is out of bounds or not in its enum."""


class SchemaVersionError(ValidationError):
    """Backup bundle carries a version other than the supported one."""

    def __init__(self, version: object) -> None:
        super().__init__(f"Unsupported backup bundle version: {version!r}")
        self.version = version


class StorageReadError(OTPVaultError):
    """Persisted snapshot is unreadable or corrupt."""
