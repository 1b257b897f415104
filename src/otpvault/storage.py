"""Snapshot storage backends.

A backend holds one serialized value per fixed key, like a browser's
localStorage. The account store always writes the whole list at once.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

from otpvault.crypto import SnapshotCipher
from otpvault.errors import StorageReadError

logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    def read(self, key: str) -> list[Any] | None:
        """Return the stored array, None when nothing is stored, or raise StorageReadError."""
        ...

    def write(self, key: str, value: list[Any]) -> None:
        ...


class MemoryStorage:
    """In-process storage; keeps serialized JSON text so reads never share objects with writers."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0

    def read(self, key: str) -> list[Any] | None:
        raw = self.data.get(key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageReadError(f"Stored value for {key!r} is not valid JSON") from e
        if not isinstance(value, list):
            raise StorageReadError(f"Stored value for {key!r} is not an array")
        return value

    def write(self, key: str, value: list[Any]) -> None:
        self.data[key] = json.dumps(value)
        self.writes += 1


class JsonFileStorage:
    """A single JSON mapping file, replaced atomically on every write.

    With a cipher, each value is stored as a sealed token string instead of a
    plain array.
    """

    def __init__(self, path: Path | str, cipher: SnapshotCipher | None = None) -> None:
        self.path = Path(path)
        self._cipher = cipher
        self._lock = threading.Lock()

    def _read_mapping(self) -> dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageReadError(f"Cannot read {self.path}: {e.strerror}") from e
        try:
            mapping = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageReadError(f"{self.path} is not valid JSON") from e
        if not isinstance(mapping, dict):
            raise StorageReadError(f"{self.path} does not contain a JSON object")
        return mapping

    def read(self, key: str) -> list[Any] | None:
        with self._lock:
            mapping = self._read_mapping()
        if key not in mapping:
            return None
        value = mapping[key]
        if isinstance(value, str):
            if self._cipher is None:
                raise StorageReadError("Snapshot is encrypted but no master key is configured")
            try:
                value = json.loads(self._cipher.open(value))
            except json.JSONDecodeError as e:
                raise StorageReadError("Decrypted snapshot is not valid JSON") from e
        if not isinstance(value, list):
            raise StorageReadError(f"Stored value for {key!r} is not an array")
        return value

    def write(self, key: str, value: list[Any]) -> None:
        with self._lock:
            try:
                mapping = self._read_mapping()
            except StorageReadError:
                logger.warning("Overwriting unreadable snapshot file %s", self.path)
                mapping = {}
            if self._cipher is not None:
                mapping[key] = self._cipher.seal(json.dumps(value))
            else:
                mapping[key] = value
            self._replace(json.dumps(mapping, indent=2))
        logger.debug("Wrote snapshot %s (%d records)", self.path, len(value))

    def _replace(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
