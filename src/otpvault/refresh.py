"""Periodic code refresh for displayed accounts.

One daemon thread per watched account recomputes the code and countdown on a
fixed cadence and hands a CodeSnapshot to a callback. Cancelling a handle
joins its thread, so no callback fires after cancel() returns. Watching an
account again (for example after its period changed) replaces its task.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from otpvault import clock
from otpvault.config import settings
from otpvault.models import Account
from otpvault.otp import display_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CodeSnapshot:
    account_id: str
    code: str
    remaining: int
    period: int
    progress: float


@dataclass
class RefreshHandle:
    """State for one account's refresh thread."""
    account_id: str
    period: int
    thread: threading.Thread | None = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    ticks: int = 0
    error: str | None = None

    @property
    def active(self) -> bool:
        return not self.stop_event.is_set() and self.thread is not None and self.thread.is_alive()

    def cancel(self, timeout: float | None = 5.0) -> None:
        """Stop the task; no callback runs after this returns."""
        self.stop_event.set()
        if self.thread and self.thread is not threading.current_thread() and self.thread.is_alive():
            self.thread.join(timeout=timeout)


class CodeRefresher:
    """Owns the refresh tasks for every displayed account."""

    def __init__(
        self,
        callback: Callable[[CodeSnapshot], None],
        *,
        interval: float | None = None,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._callback = callback
        self._interval = interval if interval is not None else settings.refresh_interval
        self._now = now
        self._handles: dict[str, RefreshHandle] = {}
        self._lock = threading.Lock()

    def watch(self, account: Account) -> RefreshHandle:
        """Start refreshing ``account``, replacing any task already running for it."""
        with self._lock:
            old = self._handles.pop(account.id, None)
        if old is not None:
            old.cancel()
            logger.debug("Replaced refresh task for %s", account.id)

        handle = RefreshHandle(account_id=account.id, period=account.period)
        t = threading.Thread(
            target=self._loop,
            args=(account, handle),
            name=f"refresh-{account.id[:8]}",
            daemon=True,
        )
        handle.thread = t
        with self._lock:
            self._handles[account.id] = handle
        t.start()
        return handle

    def unwatch(self, account_id: str) -> None:
        with self._lock:
            handle = self._handles.pop(account_id, None)
        if handle is not None:
            handle.cancel()

    def stop(self) -> None:
        """Cancel every task."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.cancel()

    def watching(self) -> list[str]:
        with self._lock:
            return list(self._handles)

    def status(self) -> dict[str, Any]:
        with self._lock:
            handles = dict(self._handles)
        return {
            account_id: {
                "period": h.period,
                "ticks": h.ticks,
                "alive": h.thread.is_alive() if h.thread else False,
                "error": h.error,
            }
            for account_id, h in handles.items()
        }

    def snapshot(self, account: Account) -> CodeSnapshot:
        now = self._now()
        return CodeSnapshot(
            account_id=account.id,
            code=display_code(account, now),
            remaining=clock.remaining(account.period, now),
            period=account.period,
            progress=clock.progress(account.period, now),
        )

    def _loop(self, account: Account, handle: RefreshHandle) -> None:
        while not handle.stop_event.is_set():
            try:
                snap = self.snapshot(account)
                if handle.stop_event.is_set():
                    break
                self._callback(snap)
                handle.ticks += 1
                handle.error = None
            except Exception:
                handle.error = "Unhandled exception in refresh callback"
                logger.error("Error refreshing account %s", account.id, exc_info=True)
            handle.stop_event.wait(self._interval)
