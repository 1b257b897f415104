"""Account store: the owned, persisted list of OTP accounts.

Every mutation builds a new list, writes the whole snapshot, and only then
swaps it in, so memory and storage agree after each operation. The store does
no locking of its own; hosts with several threads must serialize mutations.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from otpvault.config import STORAGE_KEY
from otpvault.errors import StorageReadError, ValidationError
from otpvault.models import Account, ParsedCredential, describe_errors
from otpvault.storage import SnapshotStorage

logger = logging.getLogger(__name__)

BACKUP_CODE_MIN = 4
BACKUP_CODE_ENTRY_MAX = 50


def new_account_id() -> str:
    return str(uuid4())


def now_ms(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


class AccountStore:
    def __init__(
        self,
        storage: SnapshotStorage,
        key: str = STORAGE_KEY,
        *,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = new_account_id,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock
        self._id_factory = id_factory
        self._accounts: tuple[Account, ...] = self._load()

    # --- Reads -------------------------------------------------------------

    @property
    def accounts(self) -> tuple[Account, ...]:
        return self._accounts

    def get(self, account_id: str) -> Account | None:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[Account]:
        return iter(self._accounts)

    # --- Mutations ---------------------------------------------------------

    def add(self, candidate: ParsedCredential) -> Account:
        """Promote a credential to a stored Account with a fresh id and timestamp."""
        account = Account(
            **candidate.credential().model_dump(),
            id=self._fresh_id(),
            created_at=now_ms(self._clock),
        )
        self._save((*self._accounts, account))
        logger.info("Added account %s (%s)", account.id, account.issuer)
        return account

    def remove(self, account_id: str) -> None:
        self._save(tuple(a for a in self._accounts if a.id != account_id))

    def update(self, account_id: str, **fields: Any) -> None:
        """Merge ``fields`` into the account; the result is re-validated."""
        if "id" in fields:
            raise ValidationError("Account id cannot be changed")
        unknown = set(fields) - set(Account.model_fields)
        if unknown:
            raise ValidationError(f"Unknown account fields: {', '.join(sorted(unknown))}")
        self._save(tuple(
            self._revalidate(a, fields) if a.id == account_id else a for a in self._accounts
        ))

    def set_backup_codes(self, account_id: str, codes: Sequence[str]) -> None:
        """Replace the account's backup codes wholesale."""
        self.update(account_id, backup_codes=list(codes))

    def add_backup_code(self, account_id: str, code: str) -> None:
        account = self.get(account_id)
        if account is None:
            return
        code = code.strip()
        if len(code) < BACKUP_CODE_MIN:
            raise ValidationError("Code too short")
        if len(code) > BACKUP_CODE_ENTRY_MAX:
            raise ValidationError("Code too long")
        if code in account.backup_codes:
            raise ValidationError("This code already exists")
        self.set_backup_codes(account_id, [*account.backup_codes, code])

    def remove_backup_code(self, account_id: str, index: int) -> None:
        account = self.get(account_id)
        if account is None:
            return
        if not 0 <= index < len(account.backup_codes):
            raise IndexError(f"No backup code at position {index}")
        codes = list(account.backup_codes)
        del codes[index]
        self.set_backup_codes(account_id, codes)

    def import_many(self, accounts: Iterable[Account]) -> None:
        """Append accounts as given, keeping their ids and timestamps."""
        incoming = tuple(accounts)
        seen = {a.id for a in self._accounts}
        for account in incoming:
            if account.id in seen:
                raise ValidationError(f"Duplicate account id: {account.id}")
            seen.add(account.id)
        self._save((*self._accounts, *incoming))
        logger.info("Imported %d account(s)", len(incoming))

    def clear_all(self) -> None:
        self._save(())
        logger.info("Cleared all accounts")

    # --- Internals ---------------------------------------------------------

    def _fresh_id(self) -> str:
        taken = {a.id for a in self._accounts}
        while True:
            candidate = self._id_factory()
            if candidate not in taken:
                return candidate

    @staticmethod
    def _revalidate(account: Account, fields: dict[str, Any]) -> Account:
        try:
            return Account.model_validate({**account.model_dump(), **fields})
        except PydanticValidationError as e:
            raise ValidationError(describe_errors(e)) from e

    def _load(self) -> tuple[Account, ...]:
        try:
            records = self._storage.read(self._key)
        except StorageReadError as e:
            logger.warning("Failed to parse stored accounts, starting empty: %s", e)
            return ()
        if records is None:
            return ()
        try:
            return tuple(Account.model_validate(r) for r in records)
        except PydanticValidationError as e:
            logger.warning("Failed to parse stored accounts, starting empty: %s", describe_errors(e))
            return ()

    def _save(self, accounts: tuple[Account, ...]) -> None:
        self._storage.write(self._key, [a.to_json() for a in accounts])
        self._accounts = accounts
