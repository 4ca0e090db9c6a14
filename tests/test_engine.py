"""End-to-end crawl job tests against an in-memory site."""

from __future__ import annotations

import time

import pytest

from conftest import BASE_URL, FakeFetcher, RecordingProcessor, html_page
from newscrawl.cancel import CancelToken
from newscrawl.completion import CrawlState
from newscrawl.config import CrawlConfig
from newscrawl.engine import CrawlJob
from newscrawl.errors import ConfigurationError
from newscrawl.types import Classification


OG_ARTICLE = '<meta property="og:type" content="article">'


def url(path: str) -> str:
    return "https://example.com" + path


def make_job(config, logger, fetcher, *, article=None, content=None) -> CrawlJob:
    return CrawlJob(
        config,
        logger=logger,
        article_processor=article,
        content_processor=content,
        fetcher=fetcher,
    )


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def article() -> RecordingProcessor:
    return RecordingProcessor(Classification.ARTICLE)


@pytest.fixture
def content() -> RecordingProcessor:
    return RecordingProcessor(Classification.CONTENT)


class TestConstruction:
    def test_requires_logger(self, config, content):
        with pytest.raises(ConfigurationError):
            CrawlJob(config, logger=None, content_processor=content, fetcher=FakeFetcher({}))

    def test_requires_a_processor(self, config, logger):
        with pytest.raises(ConfigurationError):
            CrawlJob(config, logger=logger, fetcher=FakeFetcher({}))

    def test_start_only_once(self, config, logger, content):
        fetcher = FakeFetcher({BASE_URL: html_page()})
        job = make_job(config, logger, fetcher, content=content)
        job.run()
        with pytest.raises(RuntimeError):
            job.start()

    def test_wait_before_start(self, config, logger, content):
        job = make_job(config, logger, FakeFetcher({}), content=content)
        with pytest.raises(RuntimeError):
            job.wait()


class TestCrawl:
    def test_crawls_site_within_depth_and_scope(self, config, logger, article, content):
        fetcher = FakeFetcher(
            {
                BASE_URL: html_page(links=["/a", "/b", "https://other.org/x"]),
                url("/a"): html_page(links=["/c", "/"]),
                url("/b"): html_page(head=OG_ARTICLE, links=["/a"]),
                url("/c"): html_page(links=["/d"]),
                url("/d"): html_page(),
            }
        )
        job = make_job(config, logger, fetcher, article=article, content=content)

        summary = job.run()

        assert summary.reason == "drained"
        assert summary.state == CrawlState.DONE.value
        assert not summary.cancelled
        assert sorted(fetcher.calls) == sorted([BASE_URL, url("/a"), url("/b"), url("/c")])
        assert article.urls == [url("/b")]
        assert sorted(content.urls) == sorted([BASE_URL, url("/a"), url("/c")])
        assert summary.pages_fetched == 4
        assert summary.pages_processed == 4
        assert summary.errors == 0

    def test_each_url_fetched_at_most_once(self, logger, content):
        config = CrawlConfig(
            base_url=BASE_URL,
            max_depth=3,
            parallelism=4,
            rate_limit_seconds=0.0,
            retries=0,
        )
        paths = [f"/p{idx}" for idx in range(12)]
        pages = {BASE_URL: html_page(links=paths)}
        for path in paths:
            pages[url(path)] = html_page(links=paths + ["/"])
        fetcher = FakeFetcher(pages, delay=0.01)

        summary = make_job(config, logger, fetcher, content=content).run()

        assert summary.reason == "drained"
        assert len(fetcher.calls) == len(set(fetcher.calls)) == 13
        assert len(content.urls) == 13

    def test_repeated_link_is_fetched_once(self, logger, content):
        config = CrawlConfig(
            base_url="http://example.com",
            max_depth=1,
            rate_limit_seconds=0.0,
            retries=0,
        )
        target = "http://example.com/target"
        fetcher = FakeFetcher(
            {
                "http://example.com/": html_page(links=["/target", "/target", "/target"]),
                target: html_page(),
            }
        )

        summary = make_job(config, logger, fetcher, content=content).run()

        assert sorted(fetcher.calls) == ["http://example.com/", target]
        assert summary.stats["frontier"]["enqueue_counts"]["skipped_seen"] == 2

    def test_max_depth_zero_fetches_only_base(self, logger, content):
        config = CrawlConfig(base_url=BASE_URL, max_depth=0, rate_limit_seconds=0.0)
        fetcher = FakeFetcher({BASE_URL: html_page(links=["/a"]), url("/a"): html_page()})

        summary = make_job(config, logger, fetcher, content=content).run()

        assert fetcher.calls == [BASE_URL]
        assert summary.pages_processed == 1

    def test_transport_errors_do_not_abort(self, config, logger, content):
        fetcher = FakeFetcher(
            {
                BASE_URL: html_page(links=["/broken", "/missing", "/ok"]),
                url("/ok"): html_page(),
            },
            errors={url("/broken"): 500},
        )

        summary = make_job(config, logger, fetcher, content=content).run()

        assert summary.reason == "drained"
        assert sorted(content.urls) == sorted([BASE_URL, url("/ok")])
        assert summary.errors == 2
        assert summary.stats["fetch"]["status_code_counts"]["500"] == 1
        assert summary.stats["fetch"]["status_code_counts"]["404"] == 1

    def test_processor_failures_do_not_abort(self, config, logger):
        failing = RecordingProcessor(Classification.CONTENT, fail=True)
        fetcher = FakeFetcher({BASE_URL: html_page(links=["/a"]), url("/a"): html_page()})

        summary = make_job(config, logger, fetcher, content=failing).run()

        assert summary.reason == "drained"
        assert sorted(failing.urls) == sorted([BASE_URL, url("/a")])
        assert summary.pages_processed == 0
        assert summary.errors == 2

    def test_article_without_article_processor_goes_to_content(self, config, logger, content):
        fetcher = FakeFetcher({BASE_URL: html_page(head=OG_ARTICLE)})

        make_job(config, logger, fetcher, content=content).run()

        assert content.urls == [BASE_URL]

    def test_non_html_is_not_dispatched(self, config, logger, content):
        pdf_url = url("/report.pdf")
        fetcher = FakeFetcher(
            {BASE_URL: html_page(links=["/report.pdf"]), pdf_url: "%PDF-1.4"},
            content_types={pdf_url: "application/pdf"},
        )

        summary = make_job(config, logger, fetcher, content=content).run()

        assert content.urls == [BASE_URL]
        assert summary.stats["classification_counts"]["unclassifiable"] == 1

    def test_redirect_out_of_scope_is_ignored(self, config, logger, content):
        fetcher = FakeFetcher(
            {
                BASE_URL: html_page(links=["/go"]),
                "https://other.org/landing": html_page(links=["/elsewhere"]),
            },
            redirects={url("/go"): "https://other.org/landing"},
        )

        summary = make_job(config, logger, fetcher, content=content).run()

        assert content.urls == [BASE_URL]
        assert summary.errors == 0
        assert summary.stats["ignored"] == 1
        assert summary.stats["fetch"]["ignored_type_counts"] == {"ForbiddenDomainError": 1}

    def test_redirect_to_visited_url_is_ignored(self, config, logger, content):
        fetcher = FakeFetcher(
            {BASE_URL: html_page(links=["/old"])},
            redirects={url("/old"): BASE_URL},
        )

        summary = make_job(config, logger, fetcher, content=content).run()

        assert content.urls == [BASE_URL]
        assert summary.stats["fetch"]["ignored_type_counts"] == {"AlreadyVisitedError": 1}

    def test_summary_is_stable(self, config, logger, content):
        fetcher = FakeFetcher({BASE_URL: html_page()})
        job = make_job(config, logger, fetcher, content=content)

        first = job.run()

        assert job.wait() is first
        assert job.signal.set("cancelled") is False
        assert job.signal.reason == "drained"


class TestCancellation:
    def _slow_site(self):
        children = [f"/c{idx}" for idx in range(5)]
        pages = {BASE_URL: html_page(links=children)}
        for child in children:
            pages[url(child)] = html_page()
        return FakeFetcher(pages)

    def _slow_config(self, **overrides) -> CrawlConfig:
        values = dict(
            base_url=BASE_URL,
            max_depth=1,
            parallelism=1,
            rate_limit_seconds=5.0,
            retries=0,
        )
        values.update(overrides)
        return CrawlConfig(**values)

    def test_cancel_with_pending_urls(self, logger, content):
        fetcher = self._slow_site()
        job = make_job(self._slow_config(), logger, fetcher, content=content)

        signal = job.start()
        assert wait_until(lambda: len(job.frontier.seen_urls()) == 6)
        started = time.monotonic()
        assert job.cancel() is True
        summary = job.wait(timeout=5)

        assert signal.is_set()
        assert time.monotonic() - started < 3.0
        assert summary.reason == "cancelled"
        assert summary.cancelled
        assert fetcher.calls == [BASE_URL]
        assert content.urls == [BASE_URL]

    def test_external_token(self, logger, content):
        fetcher = self._slow_site()
        job = make_job(self._slow_config(), logger, fetcher, content=content)
        token = CancelToken()

        job.start(token)
        assert wait_until(lambda: len(job.frontier.seen_urls()) == 6)
        token.cancel()
        summary = job.wait(timeout=5)

        assert summary.reason == "cancelled"
        assert fetcher.calls == [BASE_URL]

    def test_job_timeout(self, logger, content):
        fetcher = self._slow_site()
        job = make_job(
            self._slow_config(job_timeout_seconds=0.3),
            logger,
            fetcher,
            content=content,
        )

        started = time.monotonic()
        summary = job.run()

        assert summary.reason == "timeout"
        assert time.monotonic() - started < 4.0
        assert fetcher.calls == [BASE_URL]

    def test_cancel_before_start(self, logger, content):
        fetcher = self._slow_site()
        job = make_job(self._slow_config(), logger, fetcher, content=content)

        job.cancel()
        summary = job.run()

        assert summary.reason == "cancelled"
        assert fetcher.calls == []

    def test_wait_timeout_raises(self, logger, content):
        fetcher = self._slow_site()
        job = make_job(self._slow_config(), logger, fetcher, content=content)

        job.start()
        with pytest.raises(TimeoutError):
            job.wait(timeout=0.05)
        job.cancel()
        assert job.wait(timeout=5).reason == "cancelled"
