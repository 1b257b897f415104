"""Manual credential entry: validate hand-typed fields into a ParsedCredential."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from otpvault.errors import DecodeError, ValidationError
from otpvault.models import Algorithm, ParsedCredential, describe_errors
from otpvault.secret import normalize, validate_secret

ISSUER_ENTRY_MAX = 50
LABEL_ENTRY_MAX = 100


def _bounded(name: str, value: str, maximum: int) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(f"{name} is required")
    if len(value) > maximum:
        raise ValidationError(f"{name} too long (max {maximum} characters)")
    return value


def manual_credential(
    issuer: str,
    label: str,
    secret: str,
    algorithm: Algorithm | str = Algorithm.SHA1,
    digits: int = 6,
    period: int = 30,
) -> ParsedCredential:
    """Build a credential from manual input.

    Raises ValidationError for missing/oversized names or out-of-range
    parameters, and DecodeError when the secret is not a base32 string of at
    least the configured minimum length.
    """
    issuer = _bounded("Service name", issuer, ISSUER_ENTRY_MAX)
    label = _bounded("Account name", label, LABEL_ENTRY_MAX)
    if not secret.strip():
        raise ValidationError("Secret key is required")
    if not validate_secret(secret):
        raise DecodeError("Invalid secret key format. Must be a valid Base32 string.")
    try:
        return ParsedCredential(
            issuer=issuer,
            label=label,
            secret=normalize(secret),
            algorithm=algorithm,
            digits=digits,
            period=period,
        )
    except PydanticValidationError as e:
        raise ValidationError(describe_errors(e)) from e
