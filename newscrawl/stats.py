"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .errors import CrawlError, IgnorableError, TransportError
from .frontier import EnqueueResult, EnqueueStatus
from .types import Classification, DispatchOutcome, FetchResponse, utc_now_iso


class StatsCollector:
    """Collect and summarize crawler runtime statistics.

    The collector is thread-safe and intended for use across concurrent
    crawl workers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = utc_now_iso()
        self._finished_at: str | None = None

        self._enqueue_counts: dict[str, int] = defaultdict(int)
        self._frontier_snapshot: dict[str, int | bool] = {}

        self._fetched_ok = 0
        self._fetch_errors = 0
        self._ignored = 0
        self._cancelled_fetches = 0
        self._fetch_status_code_counts: dict[str, int] = defaultdict(int)
        self._fetch_error_type_counts: dict[str, int] = defaultdict(int)
        self._ignored_type_counts: dict[str, int] = defaultdict(int)
        self._fetch_content_kind_counts: dict[str, int] = defaultdict(int)
        self._fetch_elapsed_ms_total = 0
        self._fetch_elapsed_samples = 0
        self._fetch_bytes_total = 0

        self._classification_counts: dict[str, int] = defaultdict(int)
        self._dispatch_counts: dict[str, int] = defaultdict(int)
        self._processor_error_counts: dict[str, int] = defaultdict(int)
        self._links_found = 0

        self._custom_counters: dict[str, int] = defaultdict(int)

    def record_enqueue(self, result_or_status: EnqueueResult | EnqueueStatus) -> None:
        """Record one frontier enqueue outcome."""

        if isinstance(result_or_status, EnqueueResult):
            status = result_or_status.status
        else:
            status = result_or_status

        with self._lock:
            self._enqueue_counts[status.value] += 1

    def record_frontier_snapshot(self, snapshot: Mapping[str, int | bool]) -> None:
        """Attach latest frontier snapshot for diagnostics."""

        with self._lock:
            self._frontier_snapshot = dict(snapshot)

    def record_fetch(self, response: FetchResponse) -> None:
        """Record one successful fetch."""

        with self._lock:
            self._fetched_ok += 1
            self._fetch_status_code_counts[str(response.status_code)] += 1
            self._fetch_content_kind_counts[response.content_kind.value] += 1
            if response.elapsed_ms is not None:
                self._fetch_elapsed_ms_total += int(response.elapsed_ms)
                self._fetch_elapsed_samples += 1
            self._fetch_bytes_total += response.content_length

    def record_fetch_error(self, error: CrawlError) -> None:
        """Record one failed page: transport failures and ignorable races."""

        with self._lock:
            if isinstance(error, IgnorableError):
                self._ignored += 1
                self._ignored_type_counts[error.__class__.__name__] += 1
                return

            self._fetch_errors += 1
            self._fetch_error_type_counts[error.__class__.__name__] += 1
            if isinstance(error, TransportError) and error.status_code is not None:
                self._fetch_status_code_counts[str(error.status_code)] += 1

    def record_cancelled_fetch(self) -> None:
        with self._lock:
            self._cancelled_fetches += 1

    def record_classification(self, classification: Classification) -> None:
        with self._lock:
            self._classification_counts[classification.value] += 1

    def record_dispatch(self, outcome: DispatchOutcome, *, kind: str | None = None) -> None:
        """Record what the dispatcher did; FAILED also counts a processor error."""

        with self._lock:
            self._dispatch_counts[outcome.value] += 1
            if outcome == DispatchOutcome.FAILED:
                self._processor_error_counts[kind or "unknown"] += 1

    def record_links(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._links_found += count

    def increment(self, name: str, value: int = 1) -> None:
        """Increment a custom counter for ad-hoc instrumentation."""

        if not name or value == 0:
            return
        with self._lock:
            self._custom_counters[name] += value

    def finish(self) -> None:
        """Mark crawl as finished. Later calls keep the first timestamp."""

        with self._lock:
            if self._finished_at is None:
                self._finished_at = utc_now_iso()

    @property
    def pages_fetched(self) -> int:
        with self._lock:
            return self._fetched_ok

    @property
    def pages_processed(self) -> int:
        with self._lock:
            return (
                self._dispatch_counts[DispatchOutcome.ARTICLE.value]
                + self._dispatch_counts[DispatchOutcome.CONTENT.value]
            )

    @property
    def errors(self) -> int:
        """Transport failures plus processor failures."""

        with self._lock:
            return self._fetch_errors + sum(self._processor_error_counts.values())

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            start = _parse_iso_utc(self._started_at)
            end = (
                _parse_iso_utc(self._finished_at)
                if self._finished_at
                else datetime.now(timezone.utc)
            )
            duration_seconds = max(0.0, (end - start).total_seconds())

            fetch_elapsed_avg = (
                self._fetch_elapsed_ms_total / self._fetch_elapsed_samples
                if self._fetch_elapsed_samples > 0
                else 0.0
            )
            processed = (
                self._dispatch_counts[DispatchOutcome.ARTICLE.value]
                + self._dispatch_counts[DispatchOutcome.CONTENT.value]
            )

            return {
                "started_at": self._started_at,
                "finished_at": self._finished_at,
                "duration_seconds": duration_seconds,
                "pages_fetched": self._fetched_ok,
                "pages_processed": processed,
                "fetch_errors": self._fetch_errors,
                "ignored": self._ignored,
                "processor_errors": sum(self._processor_error_counts.values()),
                "throughput": {
                    "fetched_per_second": (
                        self._fetched_ok / duration_seconds if duration_seconds > 0 else 0.0
                    ),
                    "processed_per_second": (
                        processed / duration_seconds if duration_seconds > 0 else 0.0
                    ),
                },
                "frontier": {
                    "enqueue_counts": dict(self._enqueue_counts),
                    "snapshot": dict(self._frontier_snapshot),
                },
                "fetch": {
                    "status_code_counts": dict(self._fetch_status_code_counts),
                    "error_type_counts": dict(self._fetch_error_type_counts),
                    "ignored_type_counts": dict(self._ignored_type_counts),
                    "content_kind_counts": dict(self._fetch_content_kind_counts),
                    "cancelled": self._cancelled_fetches,
                    "elapsed_ms_total": self._fetch_elapsed_ms_total,
                    "elapsed_ms_samples": self._fetch_elapsed_samples,
                    "elapsed_ms_avg": fetch_elapsed_avg,
                    "bytes_total": self._fetch_bytes_total,
                },
                "classification_counts": dict(self._classification_counts),
                "dispatch": {
                    "outcome_counts": dict(self._dispatch_counts),
                    "processor_error_counts": dict(self._processor_error_counts),
                },
                "links_found": self._links_found,
                "custom_counters": dict(self._custom_counters),
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
