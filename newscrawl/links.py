"""Discover child links on a fetched page and hand them to the frontier."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .cancel import CancelToken
from .context import ClassificationContext
from .frontier import EnqueueStatus, Frontier
from .stats import StatsCollector
from .types import FetchRequest
from .url import resolve_url


@dataclass(slots=True)
class LinkReport:
    """Per-page link discovery counts."""

    found: int = 0
    enqueued: int = 0
    ignored: int = 0
    invalid: int = 0
    skipped: bool = False


class LinkExtractor:
    """Resolve every anchor on a page and enqueue it one level deeper.

    Anchors are not deduplicated here: repeated hrefs are rejected by the
    frontier's visited set and counted as ignored. No network I/O happens.
    """

    def __init__(
        self,
        frontier: Frontier,
        *,
        logger: logging.Logger,
        stats: StatsCollector | None = None,
    ) -> None:
        self.frontier = frontier
        self.logger = logger
        self.stats = stats

    def extract(self, context: ClassificationContext, cancel: CancelToken) -> LinkReport:
        report = LinkReport()
        if context.document is None:
            report.skipped = True
            return report
        if context.depth >= self.frontier.max_depth or cancel.cancelled:
            report.skipped = True
            return report

        base_url = context.url
        child_depth = context.depth + 1

        for anchor in context.document.anchors():
            if cancel.cancelled:
                break
            report.found += 1

            resolved = resolve_url(base_url, anchor.href)
            if resolved is None:
                report.invalid += 1
                self.logger.debug("Skipping link: url=%s href=%s reason=invalid", base_url, anchor.href)
                continue

            result = self.frontier.enqueue(
                FetchRequest(url=resolved, depth=child_depth, origin_url=base_url)
            )
            if self.stats is not None:
                self.stats.record_enqueue(result)

            if result.accepted:
                report.enqueued += 1
            elif result.ignorable:
                report.ignored += 1
                self.logger.debug(
                    "Skipping link: url=%s depth=%d reason=%s",
                    resolved,
                    child_depth,
                    result.status.value,
                )
            elif result.status == EnqueueStatus.SKIPPED_INVALID_URL:
                report.invalid += 1
                self.logger.debug("Skipping link: url=%s reason=invalid", resolved)
            else:
                self.logger.warning(
                    "Unexpected enqueue result: url=%s status=%s error=%s",
                    resolved,
                    result.status.value,
                    result.error(),
                )

        if self.stats is not None:
            self.stats.record_links(report.found)
        return report


__all__ = ["LinkExtractor", "LinkReport"]
