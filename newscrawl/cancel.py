"""Job-scoped cancellation token shared by all blocking crawl operations."""

from __future__ import annotations

import threading
import time

from .errors import CrawlCancelledError


class CancelToken:
    """Thread-safe cancellation flag with an optional deadline.

    Expiry of the deadline is indistinguishable from `cancel()` except for the
    recorded reason (`"timeout"` instead of `"cancelled"`).
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0 when set")

        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._deadline = None if timeout is None else time.monotonic() + timeout

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the token. Returns False if it was already cancelled."""

        with self._lock:
            if self._reason is not None:
                return False
            self._reason = reason
        self._event.set()
        return True

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("timeout")
            return True
        return False

    @property
    def reason(self) -> str | None:
        if not self.cancelled:
            return None
        with self._lock:
            return self._reason

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to `timeout` seconds, waking early on cancellation.

        Returns True if the token is cancelled when the wait ends.
        """

        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        self._event.wait(timeout)
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CrawlCancelledError(self.reason or "cancelled")


__all__ = ["CancelToken"]
