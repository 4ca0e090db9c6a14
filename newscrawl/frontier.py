"""Thread-safe frontier queue with scope, depth and dedup enforcement."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum

from .cancel import CancelToken
from .constants import CANCEL_POLL_SECONDS
from .errors import (
    AlreadyVisitedError,
    CrawlError,
    ForbiddenDomainError,
    InvalidURLError,
    MaxDepthError,
)
from .types import FetchRequest
from .url import is_in_scope, normalize_url


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_OUT_OF_SCOPE = "skipped_out_of_scope"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_CLOSED = "skipped_closed"


IGNORABLE_STATUSES = frozenset(
    {
        EnqueueStatus.SKIPPED_OUT_OF_SCOPE,
        EnqueueStatus.SKIPPED_DEPTH,
        EnqueueStatus.SKIPPED_SEEN,
        EnqueueStatus.SKIPPED_CLOSED,
    }
)


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    url: str
    normalized_url: str | None = None
    request: FetchRequest | None = None

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED

    @property
    def ignorable(self) -> bool:
        return self.status in IGNORABLE_STATUSES

    def error(self) -> CrawlError | None:
        """Return the error equivalent of a rejection, or None if accepted."""

        target = self.normalized_url or self.url
        if self.status == EnqueueStatus.SKIPPED_SEEN:
            return AlreadyVisitedError(target)
        if self.status == EnqueueStatus.SKIPPED_DEPTH:
            return MaxDepthError(target)
        if self.status == EnqueueStatus.SKIPPED_OUT_OF_SCOPE:
            return ForbiddenDomainError(target)
        if self.status == EnqueueStatus.SKIPPED_CLOSED:
            return AlreadyVisitedError(target, f"frontier closed: {target}")
        if self.status == EnqueueStatus.SKIPPED_INVALID_URL:
            return InvalidURLError(self.url)
        return None


class Frontier:
    """Pending fetch queue shared by the worker pool.

    - The visited-set check and insert happen in one locked step, so a URL is
      accepted at most once per job even under concurrent discovery.
    - `dequeue` hands out an item and increments the in-flight counter in the
      same locked step; `task_done` decrements it after the worker's whole unit
      of work. An empty queue with zero in-flight work means the crawl drained.
    """

    def __init__(
        self,
        *,
        allowed_host: str,
        max_depth: int,
        include_subdomains: bool = False,
    ) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")

        self.allowed_host = allowed_host
        self.max_depth = max_depth
        self.include_subdomains = include_subdomains

        self._cond = threading.Condition()
        self._queue: deque[FetchRequest] = deque()
        self._seen_urls: set[str] = set()
        self._in_flight = 0
        self._closed = False

        self._status_counts: dict[EnqueueStatus, int] = {status: 0 for status in EnqueueStatus}
        self._dequeued_count = 0
        self._completed_count = 0

    def enqueue(self, request: FetchRequest) -> EnqueueResult:
        """Attempt to enqueue one request with constraints enforced."""

        normalized = normalize_url(request.url)
        if not normalized:
            return self._reject(EnqueueStatus.SKIPPED_INVALID_URL, request.url, None)

        if request.depth > self.max_depth:
            return self._reject(EnqueueStatus.SKIPPED_DEPTH, request.url, normalized)

        if not is_in_scope(
            normalized,
            self.allowed_host,
            include_subdomains=self.include_subdomains,
        ):
            return self._reject(EnqueueStatus.SKIPPED_OUT_OF_SCOPE, request.url, normalized)

        with self._cond:
            if self._closed:
                self._status_counts[EnqueueStatus.SKIPPED_CLOSED] += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_CLOSED, request.url, normalized)

            if normalized in self._seen_urls:
                self._status_counts[EnqueueStatus.SKIPPED_SEEN] += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, request.url, normalized)

            self._seen_urls.add(normalized)
            item = FetchRequest(
                url=normalized,
                depth=request.depth,
                origin_url=request.origin_url,
            )
            self._queue.append(item)
            self._status_counts[EnqueueStatus.ENQUEUED] += 1
            self._cond.notify()

        return EnqueueResult(
            EnqueueStatus.ENQUEUED,
            request.url,
            normalized_url=normalized,
            request=item,
        )

    def dequeue(self, cancel: CancelToken, *, timeout: float | None = None) -> FetchRequest | None:
        """Pop one request for a worker thread.

        Blocks until an item is available. Returns `None` when the frontier is
        drained or closed, the token is cancelled, or `timeout` elapses.
        """

        waited = 0.0
        with self._cond:
            while True:
                if cancel.cancelled or self._closed:
                    return None
                if self._queue:
                    item = self._queue.popleft()
                    self._in_flight += 1
                    self._dequeued_count += 1
                    return item
                if self._in_flight == 0:
                    return None
                if timeout is not None and waited >= timeout:
                    return None
                self._cond.wait(CANCEL_POLL_SECONDS)
                waited += CANCEL_POLL_SECONDS

    def task_done(self) -> bool:
        """Mark one dequeued request as fully processed.

        Returns True when this call left the frontier drained.
        """

        with self._cond:
            if self._in_flight <= 0:
                raise ValueError("task_done() called more times than dequeue()")
            self._in_flight -= 1
            self._completed_count += 1
            drained = self._in_flight == 0 and not self._queue
            if drained:
                self._cond.notify_all()
            return drained

    def claim(self, url: str) -> bool:
        """Mark a URL visited outside of `enqueue` (e.g. a redirect target).

        Returns False when the URL had already been visited.
        """

        normalized = normalize_url(url)
        if not normalized:
            return False
        with self._cond:
            if normalized in self._seen_urls:
                return False
            self._seen_urls.add(normalized)
            return True

    def close(self) -> None:
        """Close frontier to further enqueues and wake blocked workers."""

        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def is_drained(self) -> bool:
        """Queue empty and no work in flight, checked under one lock."""

        with self._cond:
            return not self._queue and self._in_flight == 0

    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def seen_urls(self) -> set[str]:
        """Return snapshot of visited URLs."""

        with self._cond:
            return set(self._seen_urls)

    def snapshot(self) -> dict[str, int | bool]:
        """Return frontier counters for logs/stats reporting."""

        with self._cond:
            payload: dict[str, int | bool] = {
                "closed": self._closed,
                "queue_size": len(self._queue),
                "in_flight": self._in_flight,
                "seen_urls": len(self._seen_urls),
                "dequeued": self._dequeued_count,
                "completed": self._completed_count,
            }
            for status, count in self._status_counts.items():
                payload[status.value] = count
            return payload

    def _reject(self, status: EnqueueStatus, url: str, normalized: str | None) -> EnqueueResult:
        with self._cond:
            self._status_counts[status] += 1
        return EnqueueResult(status, url, normalized_url=normalized)


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
    "IGNORABLE_STATUSES",
]
