"""Backup bundle export/import.

Bundle format::

    {"version": 1, "exportedAt": <epoch-ms>, "accounts": [Account, ...]}

Import validates every field of every account and rejects the whole bundle
on the first problem. Imported accounts always get new ids and timestamps.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable
from datetime import date

from pydantic import ValidationError as PydanticValidationError

from otpvault.errors import SchemaVersionError, ValidationError
from otpvault.models import Account, BackupBundle, describe_errors
from otpvault.store import new_account_id, now_ms

logger = logging.getLogger(__name__)

BUNDLE_VERSION = 1
MIME_TYPE = "application/json"


def bundle_filename(today: date | None = None) -> str:
    """Suggested export filename, e.g. authenticator-backup-2024-05-01.json."""
    today = today or date.today()
    return f"authenticator-backup-{today.isoformat()}.json"


def export_bundle(accounts: Iterable[Account], now: float | None = None) -> bytes:
    """Serialize accounts into a version-1 bundle (UTF-8 JSON)."""
    exported_at = now_ms() if now is None else int(now * 1000)
    payload = {
        "version": BUNDLE_VERSION,
        "exportedAt": exported_at,
        "accounts": [a.to_json() for a in accounts],
    }
    return json.dumps(payload, indent=2).encode("utf-8")


def import_bundle(
    data: bytes | str,
    *,
    clock: Callable[[], float] = time.time,
    id_factory: Callable[[], str] = new_account_id,
) -> list[Account]:
    """Parse and validate a bundle, returning accounts with fresh identities.

    Raises SchemaVersionError for a version other than 1 and ValidationError
    for anything else wrong with the file.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Backup file is not valid JSON") from e
    if not isinstance(raw, dict):
        raise ValidationError("Backup file must contain a JSON object")
    if "version" not in raw:
        raise ValidationError("Backup file has no version")
    if raw["version"] != BUNDLE_VERSION or isinstance(raw["version"], bool):
        raise SchemaVersionError(raw["version"])

    try:
        bundle = BackupBundle.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid backup file: {describe_errors(e)}") from e

    created_at = now_ms(clock)
    imported = [
        account.model_copy(update={"id": id_factory(), "created_at": created_at})
        for account in bundle.accounts
    ]
    logger.info("Read %d account(s) from backup bundle", len(imported))
    return imported
