"""
Run context — the single cancellation/deadline signal for a run.

One RunContext is created per run by whichever entry point launches it
and threaded into every check and every blocking cluster wait:

    - CLI:    ui/cli/diagnose.py → signal handlers call cancel()
    - Tests:  RunContext() directly, cancel() from a fake check

Design notes:
    - Backed by a threading.Event so a signal handler (or another thread)
      can fire it while the main thread is blocked in a wait.
    - The deadline is monotonic; reaching it counts as cancellation.
"""

from __future__ import annotations

import threading
import time


class RunCancelled(Exception):
    """Raised when a blocking step is attempted after the run was cancelled."""


class RunContext:
    """Cancellation flag plus optional deadline, shared by a whole run."""

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline: float | None = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        """Whether cancel() was called or the deadline has passed."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.reason = self.reason or "deadline exceeded"
            self._event.set()
            return True
        return False

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the cancellation signal. Idempotent."""
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cap(self, timeout: float) -> float:
        """Bound a per-operation timeout by the remaining deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True early if cancelled."""
        if self.cancelled:
            return True
        self._event.wait(self.cap(seconds))
        return self.cancelled

    def check(self) -> None:
        """Raise RunCancelled if the run can no longer block."""
        if self.cancelled:
            raise RunCancelled(f"Run {self.reason or 'cancelled'}")
