"""otpvault — offline TOTP authenticator core: codes, provisioning URIs, account store."""

__version__ = "0.1.0"
