"""Crawl lifecycle state and the one-shot completion signal."""

from __future__ import annotations

from enum import Enum
import threading

from .frontier import Frontier


class CrawlState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


class CompletionSignal:
    """One-shot event carrying the reason the crawl ended.

    Only the first `set` wins; later calls return False and leave the reason
    untouched.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None

    def set(self, reason: str) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason


class CompletionDetector:
    """Drive `RUNNING -> DRAINING -> DONE` for one job.

    `finish` and `cancel` both enter DONE; whichever runs first sets the
    signal, so completion fires exactly once.
    """

    def __init__(self, frontier: Frontier, signal: CompletionSignal | None = None) -> None:
        self.frontier = frontier
        self.signal = signal or CompletionSignal()
        self._lock = threading.Lock()
        self._state = CrawlState.RUNNING

    @property
    def state(self) -> CrawlState:
        with self._lock:
            return self._state

    @property
    def done(self) -> bool:
        return self.state == CrawlState.DONE

    def mark_draining(self) -> bool:
        """Enter DRAINING if the frontier really is drained right now."""

        if not self.frontier.is_drained():
            return False
        with self._lock:
            if self._state != CrawlState.RUNNING:
                return False
            self._state = CrawlState.DRAINING
            return True

    def finish(self, reason: str = "drained") -> bool:
        """Enter DONE and fire the signal. Returns False if already done."""

        with self._lock:
            if self._state == CrawlState.DONE:
                return False
            self._state = CrawlState.DONE
        self.frontier.close()
        return self.signal.set(reason)

    def cancel(self, reason: str = "cancelled") -> bool:
        """Force DONE without waiting for in-flight work to drain."""

        self.frontier.close()
        return self.finish(reason)


__all__ = ["CompletionDetector", "CompletionSignal", "CrawlState"]
