"""Crawl job orchestration: worker pool, completion and cancellation."""

from __future__ import annotations

import logging
import threading
import time

from .cancel import CancelToken
from .classifier import ContentClassifier
from .completion import CompletionDetector, CompletionSignal, CrawlState
from .config import CrawlConfig
from .constants import CANCEL_POLL_SECONDS, WORKER_JOIN_TIMEOUT_SECONDS
from .context import ClassificationContext
from .dispatcher import ProcessorDispatcher
from .errors import (
    AlreadyVisitedError,
    ConfigurationError,
    CrawlCancelledError,
    ForbiddenDomainError,
    IgnorableError,
    TransportError,
)
from .fetcher import Fetcher
from .frontier import Frontier
from .limiter import RateLimiter
from .links import LinkExtractor
from .parsers import HTMLParser
from .processors import DocumentProcessor
from .stats import StatsCollector
from .types import CrawlSummary, FetchRequest, FetchResponse
from .url import host_from_url, is_in_scope, normalize_url


class CrawlJob:
    """One bounded crawl of a single domain.

    Everything the crawl mutates (frontier, visited set, limiters, stats,
    cancellation token) belongs to the job; two jobs never share state. A job
    can be started once.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        logger: logging.Logger | None,
        article_processor: DocumentProcessor | None = None,
        content_processor: DocumentProcessor | None = None,
        fetcher: Fetcher | None = None,
        parser: HTMLParser | None = None,
        classifier: ContentClassifier | None = None,
        stats: StatsCollector | None = None,
    ) -> None:
        if logger is None:
            raise ConfigurationError("CrawlJob requires a logger")
        if article_processor is None and content_processor is None:
            raise ConfigurationError("CrawlJob requires at least one document processor")

        self.config = config
        self.logger = logger
        self.stats = stats or StatsCollector()

        self.fetcher = fetcher or Fetcher(config)
        self.parser = parser or HTMLParser()
        self.classifier = classifier or ContentClassifier(config.classifier)
        self._owns_fetcher = fetcher is None

        self.frontier = Frontier(
            allowed_host=config.allowed_host,
            max_depth=config.max_depth,
            include_subdomains=config.include_subdomains,
        )
        self.detector = CompletionDetector(self.frontier)
        self.dispatcher = ProcessorDispatcher(
            article_processor,
            content_processor,
            logger=logger,
            stats=self.stats,
        )
        self.links = LinkExtractor(self.frontier, logger=logger, stats=self.stats)

        self._limiters: dict[str, RateLimiter] = {}
        self._limiters_lock = threading.Lock()

        self._cancel = CancelToken(timeout=None)
        self._external_cancel: CancelToken | None = None
        self._start_lock = threading.Lock()
        self._started = False
        self._started_at = 0.0
        self._workers: list[threading.Thread] = []
        self._watcher: threading.Thread | None = None
        self._summary: CrawlSummary | None = None

    @property
    def signal(self) -> CompletionSignal:
        return self.detector.signal

    @property
    def state(self) -> CrawlState:
        return self.detector.state

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel

    def start(self, cancel: CancelToken | None = None) -> CompletionSignal:
        """Seed the base URL and start the worker pool.

        `cancel` is an optional caller-owned token; cancelling it has the same
        effect as `CrawlJob.cancel`.
        """

        with self._start_lock:
            if self._started:
                raise RuntimeError("crawl job can only be started once")
            self._started = True

        self._started_at = time.monotonic()
        # The job timeout starts counting here, not at construction.
        if not self._cancel.cancelled:
            self._cancel = CancelToken(timeout=self.config.job_timeout_seconds)
        self._external_cancel = cancel

        self.logger.info(
            "Starting crawl: url=%s host=%s max_depth=%d parallelism=%d rate_limit=%s",
            self.config.base_url,
            self.config.allowed_host,
            self.config.max_depth,
            self.config.parallelism,
            self.config.rate_limit_seconds,
        )

        seed = self.frontier.enqueue(FetchRequest(url=self.config.base_url, depth=0))
        self.stats.record_enqueue(seed)
        if not seed.accepted:
            self.logger.warning(
                "Base URL not enqueued: url=%s status=%s",
                self.config.base_url,
                seed.status.value,
            )
            self.detector.finish("drained")
            return self.signal

        self._workers = [
            threading.Thread(
                target=self._worker,
                name=f"crawler-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.config.parallelism)
        ]
        for worker in self._workers:
            worker.start()

        self._watcher = threading.Thread(
            target=self._watch_cancellation,
            name="crawler-watcher",
            daemon=True,
        )
        self._watcher.start()
        return self.signal

    def wait(self, timeout: float | None = None) -> CrawlSummary:
        """Block until the crawl is DONE and return its summary.

        Raises `TimeoutError` if `timeout` elapses first; the crawl keeps
        running in that case.
        """

        if not self._started:
            raise RuntimeError("crawl job has not been started")
        if not self.signal.wait(timeout):
            raise TimeoutError(f"crawl still running after {timeout} seconds")

        if self._summary is not None:
            return self._summary

        for worker in self._workers:
            worker.join(timeout=WORKER_JOIN_TIMEOUT_SECONDS)
            if worker.is_alive():
                self.logger.warning("Worker did not stop in time: thread=%s", worker.name)
        if self._watcher is not None:
            self._watcher.join(timeout=WORKER_JOIN_TIMEOUT_SECONDS)

        if self._owns_fetcher:
            self.fetcher.close()

        self.stats.record_frontier_snapshot(self.frontier.snapshot())
        self.stats.finish()

        reason = self.signal.reason or "drained"
        self._summary = CrawlSummary(
            base_url=self.config.base_url,
            state=self.detector.state.value,
            reason=reason,
            pages_fetched=self.stats.pages_fetched,
            pages_processed=self.stats.pages_processed,
            errors=self.stats.errors,
            duration_seconds=max(0.0, time.monotonic() - self._started_at),
            stats=self.stats.to_json(),
        )
        self.logger.info(
            "Crawl finished: url=%s reason=%s fetched=%d processed=%d errors=%d duration=%.2fs",
            self.config.base_url,
            reason,
            self._summary.pages_fetched,
            self._summary.pages_processed,
            self._summary.errors,
            self._summary.duration_seconds,
        )
        return self._summary

    def run(self, cancel: CancelToken | None = None) -> CrawlSummary:
        """Start the crawl and block until it finishes."""

        self.start(cancel)
        return self.wait()

    def cancel(self, reason: str = "cancelled") -> bool:
        """Stop the crawl now.

        Returns False if the crawl had already finished or been cancelled.
        """

        if self.signal.is_set():
            return False
        if not self._cancel.cancel(reason):
            return False
        if self._started and self.detector.cancel(reason):
            self.logger.info("Crawl cancelled: url=%s reason=%s", self.config.base_url, reason)
        return True

    def _watch_cancellation(self) -> None:
        while not self.signal.is_set():
            external = self._external_cancel
            if external is not None and external.cancelled:
                self._cancel.cancel(external.reason or "cancelled")
            if self._cancel.cancelled:
                reason = self._cancel.reason or "cancelled"
                if self.detector.cancel(reason):
                    self.logger.info(
                        "Crawl cancelled: url=%s reason=%s",
                        self.config.base_url,
                        reason,
                    )
                return
            self.signal.wait(CANCEL_POLL_SECONDS)

    def _worker(self) -> None:
        while True:
            item = self.frontier.dequeue(self._cancel)
            if item is None:
                return

            try:
                self._crawl_one(item)
            except Exception as exc:
                self.stats.increment("worker_errors")
                self.logger.exception(
                    "Unexpected worker error: url=%s depth=%d error=%s",
                    item.url,
                    item.depth,
                    exc,
                )
            finally:
                if self.frontier.task_done() and self.detector.mark_draining():
                    self.detector.finish("drained")

    def _crawl_one(self, item: FetchRequest) -> None:
        cancel = self._cancel
        if cancel.cancelled:
            return

        limiter = self._limiter_for(host_from_url(item.url))
        try:
            with limiter.slot(cancel):
                response = self.fetcher.fetch(item.url, cancel=cancel)
        except CrawlCancelledError as exc:
            self.stats.record_cancelled_fetch()
            self.logger.debug("Fetch cancelled: url=%s reason=%s", item.url, exc.reason)
            return
        except TransportError as exc:
            self.stats.record_fetch_error(exc)
            self.logger.error(
                "Fetch failed: url=%s depth=%d status=%s error=%s",
                item.url,
                item.depth,
                exc.status_code,
                exc,
            )
            return

        self.stats.record_fetch(response)
        try:
            self._check_redirect(item, response)
        except IgnorableError as exc:
            self.stats.record_fetch_error(exc)
            self.logger.debug("Ignoring page: url=%s depth=%d error=%s", item.url, item.depth, exc)
            return

        context = ClassificationContext(
            request=item,
            response=response,
            document=self.parser.parse(response),
        )
        classification = self.classifier.classify_context(context)
        self.stats.record_classification(classification)
        self.logger.info(
            "Fetched page: url=%s depth=%d status=%s classification=%s",
            context.url,
            item.depth,
            response.status_code,
            classification.value,
        )

        # Pages that finish fetching after cancellation are dropped.
        if cancel.cancelled:
            return
        self.dispatcher.dispatch(context, cancel=cancel)
        self.links.extract(context, cancel)

    def _check_redirect(self, item: FetchRequest, response: FetchResponse) -> None:
        final_url = normalize_url(response.final_url)
        if not final_url or final_url == item.url:
            return
        if not is_in_scope(
            final_url,
            self.config.allowed_host,
            include_subdomains=self.config.include_subdomains,
        ):
            raise ForbiddenDomainError(final_url, f"redirected out of scope: {item.url} -> {final_url}")
        if not self.frontier.claim(final_url):
            raise AlreadyVisitedError(final_url, f"redirected to visited URL: {item.url} -> {final_url}")

    def _limiter_for(self, host: str) -> RateLimiter:
        with self._limiters_lock:
            limiter = self._limiters.get(host)
            if limiter is None:
                limiter = RateLimiter(
                    parallelism=self.config.parallelism,
                    interval=self.config.rate_limit_seconds,
                    jitter=self.config.random_delay_seconds,
                )
                self._limiters[host] = limiter
            return limiter


__all__ = ["CrawlJob"]
