"""otpvault CLI — unified entry point.

Usage:
    python -m otpvault add-uri 'otpauth://totp/...'   # Add from a decoded QR code
    python -m otpvault add                           # Add by manual entry
    python -m otpvault list                          # Current codes
    python -m otpvault watch                         # Live-refreshing codes
    python -m otpvault export [PATH]                 # Write backup bundle
    python -m otpvault import PATH                   # Restore backup bundle
    python -m otpvault backup-codes list ID          # Recovery codes
"""

from __future__ import annotations

from otpvault.cli import main

if __name__ == "__main__":
    main()
