"""Tests for frontier dedup, scope, depth and drain accounting."""

from __future__ import annotations

import threading

import pytest

from conftest import enqueue_url
from newscrawl.cancel import CancelToken
from newscrawl.errors import ForbiddenDomainError, InvalidURLError, MaxDepthError
from newscrawl.frontier import EnqueueStatus, Frontier
from newscrawl.types import FetchRequest


@pytest.fixture
def frontier() -> Frontier:
    return Frontier(allowed_host="example.com", max_depth=2)


class TestEnqueue:
    def test_same_link_three_times_is_accepted_once(self, frontier):
        results = [
            enqueue_url(frontier, "https://example.com/story", depth=1, origin_url="https://example.com/")
            for _ in range(3)
        ]
        assert [result.status for result in results] == [
            EnqueueStatus.ENQUEUED,
            EnqueueStatus.SKIPPED_SEEN,
            EnqueueStatus.SKIPPED_SEEN,
        ]
        assert frontier.pending() == 1
        assert frontier.seen_urls() == {"https://example.com/story"}

    def test_normalized_duplicates(self, frontier):
        assert enqueue_url(frontier, "https://example.com/a?utm_source=x", depth=1).accepted
        assert not enqueue_url(frontier, "https://EXAMPLE.com/a#section", depth=1).accepted

    def test_request_is_normalized(self, frontier):
        result = frontier.enqueue(
            FetchRequest(url="https://example.com/a/", depth=1, origin_url="https://example.com/")
        )
        assert result.request == FetchRequest(
            url="https://example.com/a", depth=1, origin_url="https://example.com/"
        )

    def test_depth_limit(self, frontier):
        assert enqueue_url(frontier, "https://example.com/deep", depth=2).accepted
        result = enqueue_url(frontier, "https://example.com/deeper", depth=3)
        assert result.status == EnqueueStatus.SKIPPED_DEPTH
        assert result.ignorable
        assert isinstance(result.error(), MaxDepthError)

    def test_out_of_scope(self, frontier):
        result = enqueue_url(frontier, "https://other.org/page", depth=1)
        assert result.status == EnqueueStatus.SKIPPED_OUT_OF_SCOPE
        assert isinstance(result.error(), ForbiddenDomainError)
        assert frontier.seen_urls() == set()

    def test_invalid_url(self, frontier):
        result = enqueue_url(frontier, "mailto:editor@example.com", depth=1)
        assert result.status == EnqueueStatus.SKIPPED_INVALID_URL
        assert not result.ignorable
        assert isinstance(result.error(), InvalidURLError)

    def test_closed(self, frontier):
        frontier.close()
        result = enqueue_url(frontier, "https://example.com/", depth=0)
        assert result.status == EnqueueStatus.SKIPPED_CLOSED
        assert frontier.closed

    def test_accepted_has_no_error(self, frontier):
        assert enqueue_url(frontier, "https://example.com/", depth=0).error() is None

    def test_negative_depth_rejected(self):
        with pytest.raises(ValueError):
            Frontier(allowed_host="example.com", max_depth=-1)

    def test_concurrent_enqueue_is_at_most_once(self, frontier):
        urls = [f"https://example.com/page/{idx}" for idx in range(50)]
        accepted: list[str] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def discover():
            barrier.wait()
            for url in urls:
                result = enqueue_url(frontier, url, depth=1)
                if result.accepted:
                    with lock:
                        accepted.append(result.normalized_url)

        threads = [threading.Thread(target=discover) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert sorted(accepted) == sorted(urls)
        assert frontier.pending() == 50
        assert frontier.snapshot()["skipped_seen"] == 50 * 7


class TestDequeue:
    def test_dequeue_tracks_in_flight(self, frontier, cancel):
        enqueue_url(frontier, "https://example.com/", depth=0)
        item = frontier.dequeue(cancel)
        assert item is not None
        assert item.url == "https://example.com/"
        assert frontier.in_flight() == 1
        assert not frontier.is_drained()

    def test_waits_while_work_in_flight(self, frontier, cancel):
        enqueue_url(frontier, "https://example.com/", depth=0)
        frontier.dequeue(cancel)
        assert frontier.dequeue(cancel, timeout=0.1) is None
        assert frontier.in_flight() == 1

    def test_child_enqueued_before_task_done_is_handed_out(self, frontier, cancel):
        enqueue_url(frontier, "https://example.com/", depth=0)
        frontier.dequeue(cancel)

        got: list[FetchRequest | None] = []
        waiter = threading.Thread(target=lambda: got.append(frontier.dequeue(cancel, timeout=5)))
        waiter.start()
        enqueue_url(frontier, "https://example.com/child", depth=1)
        waiter.join(timeout=5)

        assert got and got[0] is not None
        assert got[0].url == "https://example.com/child"

    def test_task_done_reports_drain(self, frontier, cancel):
        enqueue_url(frontier, "https://example.com/", depth=0)
        frontier.dequeue(cancel)
        assert frontier.task_done() is True
        assert frontier.is_drained()
        assert frontier.dequeue(cancel) is None

    def test_task_done_not_drained_with_pending(self, frontier, cancel):
        enqueue_url(frontier, "https://example.com/", depth=0)
        frontier.dequeue(cancel)
        enqueue_url(frontier, "https://example.com/a", depth=1)
        assert frontier.task_done() is False

    def test_task_done_without_dequeue(self, frontier):
        with pytest.raises(ValueError):
            frontier.task_done()

    def test_cancelled_returns_none(self, frontier):
        token = CancelToken()
        enqueue_url(frontier, "https://example.com/", depth=0)
        token.cancel()
        assert frontier.dequeue(token) is None
        assert frontier.pending() == 1

    def test_close_wakes_waiters(self, frontier, cancel):
        enqueue_url(frontier, "https://example.com/", depth=0)
        frontier.dequeue(cancel)

        got: list[FetchRequest | None] = []
        waiter = threading.Thread(target=lambda: got.append(frontier.dequeue(cancel)))
        waiter.start()
        frontier.close()
        waiter.join(timeout=5)

        assert not waiter.is_alive()
        assert got == [None]


class TestClaim:
    def test_claim(self, frontier):
        assert frontier.claim("https://example.com/redirected") is True
        assert frontier.claim("https://example.com/redirected/") is False

    def test_claim_enqueued_url(self, frontier):
        enqueue_url(frontier, "https://example.com/a", depth=1)
        assert frontier.claim("https://example.com/a") is False

    def test_claim_invalid(self, frontier):
        assert frontier.claim("not a url") is False
