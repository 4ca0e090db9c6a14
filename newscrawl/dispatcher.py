"""Route each classified page to at most one document processor."""

from __future__ import annotations

import logging

from .cancel import CancelToken
from .context import ClassificationContext
from .errors import ConfigurationError, ProcessorError
from .processors import DocumentProcessor
from .stats import StatsCollector
from .types import Classification, DispatchOutcome


class ProcessorDispatcher:
    """Tagged dispatch on `Classification`.

    ARTICLE pages go to the article processor when one is registered; any other
    page, or an article with no article processor, goes to the content
    processor. With neither available the page is only logged.
    """

    def __init__(
        self,
        article_processor: DocumentProcessor | None = None,
        content_processor: DocumentProcessor | None = None,
        *,
        logger: logging.Logger,
        stats: StatsCollector | None = None,
    ) -> None:
        if article_processor is not None and article_processor.kind != Classification.ARTICLE:
            raise ConfigurationError(
                f"article processor must have kind=article, got {article_processor.kind!r}"
            )
        if content_processor is not None and content_processor.kind != Classification.CONTENT:
            raise ConfigurationError(
                f"content processor must have kind=content, got {content_processor.kind!r}"
            )

        self.article_processor = article_processor
        self.content_processor = content_processor
        self.logger = logger
        self.stats = stats

    @property
    def has_processors(self) -> bool:
        return self.article_processor is not None or self.content_processor is not None

    def select(self, context: ClassificationContext) -> DocumentProcessor | None:
        if context.classification in {None, Classification.UNCLASSIFIABLE}:
            return None
        if context.is_article and self.article_processor is not None:
            return self.article_processor
        return self.content_processor

    def dispatch(self, context: ClassificationContext, *, cancel: CancelToken) -> DispatchOutcome:
        if cancel.cancelled:
            return DispatchOutcome.NONE

        processor = self.select(context)
        if processor is None:
            self.logger.debug(
                "No processor for page: url=%s classification=%s",
                context.url,
                context.classification.value if context.classification else None,
            )
            return self._record(DispatchOutcome.NONE)

        kind = processor.kind.value
        try:
            processor.process(context, cancel=cancel)
        except Exception as exc:
            error = ProcessorError(context.url, kind, exc)
            self.logger.error(
                "Processor failed: url=%s depth=%d kind=%s error=%s",
                context.url,
                context.depth,
                kind,
                error,
            )
            return self._record(DispatchOutcome.FAILED, kind=kind)

        outcome = (
            DispatchOutcome.ARTICLE
            if processor.kind == Classification.ARTICLE
            else DispatchOutcome.CONTENT
        )
        self.logger.debug("Processed page: url=%s kind=%s", context.url, kind)
        return self._record(outcome, kind=kind)

    def _record(self, outcome: DispatchOutcome, *, kind: str | None = None) -> DispatchOutcome:
        if self.stats is not None:
            self.stats.record_dispatch(outcome, kind=kind)
        return outcome


__all__ = ["ProcessorDispatcher"]
