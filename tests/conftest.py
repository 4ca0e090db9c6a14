"""Shared fixtures and fakes for crawler tests."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

import pytest

from newscrawl import (
    CancelToken,
    Classification,
    ClassificationContext,
    CrawlConfig,
    DocumentProcessor,
    EnqueueResult,
    FetchRequest,
    FetchResponse,
    Frontier,
    HTMLDocument,
    TransportError,
)


BASE_URL = "https://example.com/"


def html_page(
    *,
    title: str = "Page",
    links: Iterable[str] = (),
    head: str = "",
    body: str = "",
) -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        f"<html><head><title>{title}</title>{head}</head>"
        f"<body>{body}{anchors}</body></html>"
    )


def enqueue_url(
    frontier: Frontier,
    url: str,
    *,
    depth: int,
    origin_url: str | None = None,
) -> EnqueueResult:
    return frontier.enqueue(FetchRequest(url=url, depth=depth, origin_url=origin_url))


def make_response(url: str, html: str, *, final_url: str | None = None) -> FetchResponse:
    return FetchResponse(
        requested_url=url,
        final_url=final_url or url,
        status_code=200,
        content_type="text/html; charset=utf-8",
        body=html.encode("utf-8"),
    )


def make_context(
    url: str,
    html: str,
    *,
    depth: int = 0,
    classification: Classification | None = None,
) -> ClassificationContext:
    return ClassificationContext(
        request=FetchRequest(url=url, depth=depth),
        response=make_response(url, html),
        document=HTMLDocument(html, url=url),
        classification=classification,
    )


class FakeFetcher:
    """In-memory stand-in for `Fetcher` keyed by normalized URL."""

    def __init__(
        self,
        pages: dict[str, str],
        *,
        delay: float = 0.0,
        errors: dict[str, int] | None = None,
        redirects: dict[str, str] | None = None,
        content_types: dict[str, str] | None = None,
    ) -> None:
        self.pages = dict(pages)
        self.delay = delay
        self.errors = dict(errors or {})
        self.redirects = dict(redirects or {})
        self.content_types = dict(content_types or {})
        self.calls: list[str] = []
        self.started = threading.Event()
        self._lock = threading.Lock()

    def fetch(self, url: str, *, cancel: CancelToken) -> FetchResponse:
        with self._lock:
            self.calls.append(url)
        self.started.set()
        if self.delay:
            cancel.wait(self.delay)

        if url in self.errors:
            code = self.errors[url]
            raise TransportError(url, f"HTTP status {code}", status_code=code)

        final_url = self.redirects.get(url, url)
        html = self.pages.get(final_url)
        if html is None:
            raise TransportError(url, "HTTP status 404", status_code=404)
        return FetchResponse(
            requested_url=url,
            final_url=final_url,
            status_code=200,
            content_type=self.content_types.get(final_url, "text/html; charset=utf-8"),
            body=html.encode("utf-8"),
        )

    def close(self) -> None:
        pass


class RecordingProcessor(DocumentProcessor):
    """Processor that remembers which URLs it saw."""

    def __init__(self, kind: Classification, *, fail: bool = False) -> None:
        self.kind = kind
        self.fail = fail
        self.urls: list[str] = []
        self._lock = threading.Lock()

    def process(self, context: ClassificationContext, *, cancel: CancelToken) -> None:
        with self._lock:
            self.urls.append(context.url)
        if self.fail:
            raise RuntimeError("processor exploded")


class ListWriter:
    def __init__(self) -> None:
        self.records: list = []

    def write(self, record) -> None:
        self.records.append(record)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests.newscrawl")


@pytest.fixture
def config() -> CrawlConfig:
    return CrawlConfig(
        base_url=BASE_URL,
        max_depth=2,
        parallelism=2,
        rate_limit_seconds=0.0,
        random_delay_seconds=0.0,
        retries=0,
        retry_backoff_seconds=0.0,
    )


@pytest.fixture
def cancel() -> CancelToken:
    return CancelToken()
