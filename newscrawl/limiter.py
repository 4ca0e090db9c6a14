"""Per-domain request gate: bounded in-flight requests plus start spacing."""

from __future__ import annotations

import random
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from .cancel import CancelToken
from .constants import CANCEL_POLL_SECONDS
from .errors import CrawlCancelledError


class RateLimiter:
    """Bound concurrent requests to one domain and space out request starts.

    - At most `parallelism` slots are held at once.
    - Consecutive request starts are at least `interval` seconds apart, plus a
      uniform random jitter in `[0, jitter]`.
    - Waiters never get dropped; they block until a slot frees or the token is
      cancelled.
    """

    def __init__(
        self,
        *,
        parallelism: int,
        interval: float = 0.0,
        jitter: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        if parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        if interval < 0 or jitter < 0:
            raise ValueError("interval and jitter must be >= 0")

        self.parallelism = parallelism
        self.interval = interval
        self.jitter = jitter

        self._clock = clock
        self._rng = rng or random.Random()

        self._cond = threading.Condition()
        self._in_flight = 0
        self._next_start = 0.0

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def acquire(self, cancel: CancelToken) -> Callable[[], None]:
        """Block until a request may start and return its one-shot release.

        Raises `CrawlCancelledError` if `cancel` fires while waiting.
        """

        with self._cond:
            while self._in_flight >= self.parallelism:
                if cancel.cancelled:
                    raise CrawlCancelledError(cancel.reason or "cancelled")
                self._cond.wait(CANCEL_POLL_SECONDS)
            self._in_flight += 1

        try:
            self._wait_for_start_slot(cancel)
        except BaseException:
            self._release_slot()
            raise

        released = threading.Event()

        def release() -> None:
            if released.is_set():
                return
            released.set()
            self._release_slot()

        return release

    @contextmanager
    def slot(self, cancel: CancelToken) -> Iterator[None]:
        """Scoped form of `acquire`: the slot is released on exit."""

        release = self.acquire(cancel)
        try:
            yield
        finally:
            release()

    def _wait_for_start_slot(self, cancel: CancelToken) -> None:
        while True:
            with self._cond:
                now = self._clock()
                if now >= self._next_start:
                    delay = self.interval
                    if self.jitter > 0:
                        delay += self._rng.uniform(0.0, self.jitter)
                    self._next_start = now + delay
                    return
                sleep_for = self._next_start - now

            if cancel.wait(sleep_for):
                raise CrawlCancelledError(cancel.reason or "cancelled")

    def _release_slot(self) -> None:
        with self._cond:
            self._in_flight -= 1
            self._cond.notify_all()


__all__ = ["RateLimiter"]
