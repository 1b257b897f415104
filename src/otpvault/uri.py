"""otpauth:// provisioning URI parsing and rendering.

The URL looks like this:

    otpauth://totp/FooCorp:alice@example.com?secret=JBSWY3DPEHPK3PXP&issuer=FooCorp&algorithm=SHA256&digits=6&period=30

- the host is the OTP type; only ``totp`` is accepted
- the path is ``issuer:label`` or just ``label``
- ``secret`` is required; ``issuer`` overrides the path issuer;
  ``algorithm``/``digits``/``period`` default to SHA1/6/30
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

import pyotp
from pydantic import ValidationError as PydanticValidationError

from otpvault.errors import ParseError
from otpvault.models import Algorithm, ParsedCredential, describe_errors

logger = logging.getLogger(__name__)

SCHEME = "otpauth"
OTP_TYPE = "totp"
UNKNOWN_ISSUER = "Unknown"


def parse_uri_strict(uri: str) -> ParsedCredential:
    """Parse a provisioning URI, raising ParseError with the reason on failure."""
    if not isinstance(uri, str):
        raise ParseError("URI must be a string")
    try:
        parts = urlsplit(uri.strip())
    except ValueError as e:
        raise ParseError("Malformed URI") from e

    if parts.scheme != SCHEME:
        raise ParseError(f"Invalid scheme: {parts.scheme or '<none>'}")
    if parts.netloc != OTP_TYPE:
        raise ParseError("Only TOTP is supported")

    try:
        path = unquote(parts.path[1:] if parts.path.startswith("/") else parts.path, errors="strict")
        query = parse_qsl(parts.query, keep_blank_values=True, errors="strict")
    except UnicodeDecodeError as e:
        raise ParseError("URI is not valid UTF-8 after percent-decoding") from e

    issuer = ""
    label = path
    if ":" in path:
        issuer, _, label = path.partition(":")

    params: dict[str, str] = {}
    for key, value in query:
        params.setdefault(key, value)

    secret = params.get("secret")
    if not secret:
        raise ParseError("Secret is required")

    if params.get("issuer"):
        issuer = params["issuer"]

    algorithm = params.get("algorithm", "").upper() or Algorithm.SHA1.value
    if algorithm not in Algorithm.__members__:
        raise ParseError(f"Unsupported algorithm: {algorithm}")

    try:
        digits = int(params.get("digits", "6"), 10)
        period = int(params.get("period", "30"), 10)
    except ValueError as e:
        raise ParseError("digits and period must be integers") from e

    try:
        return ParsedCredential(
            issuer=issuer or UNKNOWN_ISSUER,
            label=label,
            secret=secret,
            algorithm=algorithm,
            digits=digits,
            period=period,
        )
    except PydanticValidationError as e:
        raise ParseError(f"Invalid credential: {describe_errors(e)}") from e


def parse_uri(uri: str) -> ParsedCredential | None:
    """Parse a provisioning URI; None when it is not a usable TOTP credential."""
    try:
        return parse_uri_strict(uri)
    except ParseError as e:
        logger.debug("Rejected provisioning URI: %s", e)
        return None


def build_uri(credential: ParsedCredential) -> str:
    """Render a credential as a provisioning URI (e.g. for a QR code)."""
    totp = pyotp.TOTP(
        credential.secret,
        digits=credential.digits,
        digest=credential.algorithm.digest,
        interval=credential.period,
    )
    if ":" not in credential.issuer:
        return totp.provisioning_uri(name=credential.label, issuer_name=credential.issuer)

    # The path prefix ends at the first colon, so it gets a colon-free issuer;
    # the issuer parameter carries the exact value and overrides it on parse.
    path_issuer = credential.issuer.replace(":", "") or UNKNOWN_ISSUER
    uri = totp.provisioning_uri(name=credential.label, issuer_name=path_issuer)
    base, _, query = uri.partition("?")
    params = [(k, credential.issuer if k == "issuer" else v) for k, v in parse_qsl(query)]
    return f"{base}?{urlencode(params, quote_via=quote)}"
