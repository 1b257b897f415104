"""AES-256-GCM sealing of the persisted account snapshot (it holds every TOTP secret)."""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from otpvault.config import Settings, settings
from otpvault.errors import StorageReadError

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
_KEY_SIZE = 32


def generate_key() -> str:
    """New random master key, base64-encoded (suitable for OTPVAULT_MASTER_KEY)."""
    return base64.b64encode(os.urandom(_KEY_SIZE)).decode()


class SnapshotCipher:
    def __init__(self, master_key: str) -> None:
        if not master_key:
            raise RuntimeError("OTPVAULT_MASTER_KEY not set")
        try:
            key = base64.b64decode(master_key, validate=True)
        except binascii.Error as e:
            raise ValueError("OTPVAULT_MASTER_KEY must be base64-encoded") from e
        if len(key) != _KEY_SIZE:
            raise ValueError("OTPVAULT_MASTER_KEY must be 32 bytes (base64-encoded)")
        self._aead = AESGCM(key)

    def seal(self, plaintext: str) -> str:
        """Encrypt a string. Returns base64(nonce + ciphertext)."""
        nonce = os.urandom(_NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plaintext.encode(), None)
        return base64.b64encode(nonce + ct).decode()

    def open(self, token: str) -> str:
        """Decrypt a base64(nonce + ciphertext) token back to plaintext."""
        try:
            raw = base64.b64decode(token, validate=True)
            nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
            return self._aead.decrypt(nonce, ct, None).decode()
        except (ValueError, InvalidTag) as e:
            raise StorageReadError("Snapshot could not be decrypted") from e


def cipher_from_settings(cfg: Settings | None = None) -> SnapshotCipher | None:
    """Cipher for the configured master key, or None when encryption is off."""
    cfg = cfg or settings
    if not cfg.master_key:
        return None
    return SnapshotCipher(cfg.master_key)
