"""Pydantic models for credentials, stored accounts and backup bundles."""

from __future__ import annotations

import hashlib
from enum import StrEnum
from typing import Annotated, Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic import ValidationError as PydanticValidationError

from otpvault.secret import normalize

# Field ceilings shared by every input boundary; numbers are never coerced from strings or booleans
ISSUER_MAX = 100
LABEL_MAX = 200
SECRET_MAX = 500
BACKUP_CODE_MAX = 100
DIGITS_MIN, DIGITS_MAX = 1, 10
PERIOD_MIN, PERIOD_MAX = 1, 300


class Algorithm(StrEnum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digest(self) -> Callable[..., Any]:
        """hashlib constructor for this algorithm."""
        return _DIGESTS[self]


_DIGESTS = {
    Algorithm.SHA1: hashlib.sha1,
    Algorithm.SHA256: hashlib.sha256,
    Algorithm.SHA512: hashlib.sha512,
}

BackupCode = Annotated[str, StringConstraints(max_length=BACKUP_CODE_MAX)]


class ParsedCredential(BaseModel):
    """A validated credential from a provisioning URI or manual entry, not yet stored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    issuer: str = Field(max_length=ISSUER_MAX)
    label: str = Field(max_length=LABEL_MAX)
    secret: str = Field(min_length=1, max_length=SECRET_MAX, repr=False)
    algorithm: Algorithm = Algorithm.SHA1
    digits: int = Field(default=6, ge=DIGITS_MIN, le=DIGITS_MAX, strict=True)
    period: int = Field(default=30, ge=PERIOD_MIN, le=PERIOD_MAX, strict=True)

    @field_validator("secret", mode="before")
    @classmethod
    def canonical_secret(cls, v: Any) -> Any:
        return normalize(v) if isinstance(v, str) else v

    @field_validator("algorithm", mode="before")
    @classmethod
    def upper_algorithm(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def credential(self) -> ParsedCredential:
        """The credential part of this object, without identity or backup codes."""
        return ParsedCredential.model_validate(self.model_dump(include=set(ParsedCredential.model_fields)))


class Account(ParsedCredential):
    """A stored OTP credential."""

    id: str = Field(min_length=1)
    created_at: int = Field(alias="createdAt", ge=0, strict=True)
    backup_codes: list[BackupCode] = Field(default_factory=list, alias="backupCodes")

    @field_validator("backup_codes", mode="before")
    @classmethod
    def empty_codes(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_json(self) -> dict[str, Any]:
        """JSON-ready record using the persisted (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


class BackupBundle(BaseModel):
    """Versioned export artifact."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: Literal[1] = 1
    exported_at: int = Field(alias="exportedAt", ge=0, strict=True)
    accounts: list[Account] = Field(default_factory=list)


def describe_errors(exc: PydanticValidationError) -> str:
    """Summarize validation failures by field path, leaving out input values."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors(include_input=False)
    )
