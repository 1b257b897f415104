"""Countdown helpers: seconds left in the current TOTP window. Stateless."""

from __future__ import annotations

import time


def remaining(period: int, now_seconds: float | None = None) -> int:
    """Seconds until the next period boundary, in [1, period]."""
    if period < 1:
        raise ValueError("period must be positive")
    if now_seconds is None:
        now_seconds = time.time()
    return period - (int(now_seconds) % period)


def progress(period: int, now_seconds: float | None = None) -> float:
    """Fraction of the current window still left, in (0, 1]."""
    return remaining(period, now_seconds) / period
