"""URL fetching over a thread-local `requests` session with retry logic."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

import requests

from .cancel import CancelToken
from .config import CrawlConfig
from .errors import CrawlCancelledError, TransportError
from .types import FetchResponse


RETRYABLE_STATUS_CODES = frozenset({408, 429})


@dataclass(frozen=True, slots=True)
class _AttemptConfig:
    attempts: int
    backoff_seconds: float


class Fetcher:
    """Fetch URLs with `requests`.

    One `requests.Session` is kept per worker thread. Rate limiting is not done
    here; callers hold a `RateLimiter` slot around `fetch`.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def fetch(self, url: str, *, cancel: CancelToken) -> FetchResponse:
        """Fetch one URL, retrying transient failures.

        Raises `TransportError` on network errors, timeouts and non-2xx
        statuses, and `CrawlCancelledError` if cancelled between attempts.
        """

        attempt_cfg = _AttemptConfig(
            attempts=max(1, self.config.retries + 1),
            backoff_seconds=max(0.0, self.config.retry_backoff_seconds),
        )

        last_error: TransportError | None = None
        for attempt in range(1, attempt_cfg.attempts + 1):
            cancel.raise_if_cancelled()

            try:
                return self._fetch_once(url)
            except TransportError as exc:
                last_error = exc
                if not self._is_retryable(exc):
                    raise

            if attempt < attempt_cfg.attempts and attempt_cfg.backoff_seconds > 0:
                # Linear backoff keeps behavior simple and predictable.
                if cancel.wait(attempt_cfg.backoff_seconds * attempt):
                    raise CrawlCancelledError(cancel.reason or "cancelled")

        assert last_error is not None
        raise last_error

    def close(self) -> None:
        """Close all sessions opened by worker threads."""

        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @staticmethod
    def _is_retryable(exc: TransportError) -> bool:
        if exc.status_code is None:
            return True
        return exc.status_code in RETRYABLE_STATUS_CODES or exc.status_code >= 500

    def _fetch_once(self, url: str) -> FetchResponse:
        started = time.perf_counter()
        session = self._thread_local_session()

        try:
            response = session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise TransportError(url, f"{exc.__class__.__name__}: {exc}") from exc

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if not 200 <= response.status_code < 300:
            raise TransportError(
                url,
                f"HTTP status {response.status_code}",
                status_code=response.status_code,
            )

        return FetchResponse(
            requested_url=url,
            final_url=response.url or url,
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type"),
            body=response.content or b"",
            headers={str(k): str(v) for k, v in response.headers.items()},
            encoding=response.encoding,
            elapsed_ms=elapsed_ms,
        )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session


__all__ = ["Fetcher"]
