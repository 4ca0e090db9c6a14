"""Downstream document processors: turn classified pages into records."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import re
from datetime import timezone

from dateutil import parser as dateparser

from .cancel import CancelToken
from .config import ArticleSelectors
from .context import ClassificationContext
from .storage import RecordWriter
from .types import ArticleRecord, Classification, ContentRecord, JSONValue, url_digest


logger = logging.getLogger(__name__)

FALLBACK_BODY_SELECTOR = "article, main, .article-content, .article-body"


class DocumentProcessor(ABC):
    """Receives pages of one `Classification` from the dispatcher."""

    kind: Classification

    @abstractmethod
    def process(self, context: ClassificationContext, *, cancel: CancelToken) -> None:
        """Handle one page. Exceptions are reported by the dispatcher."""


def parse_published_date(value: str) -> str | None:
    """Parse a loosely formatted date into ISO-8601, or None if unparseable."""

    value = (value or "").strip()
    if not value:
        return None
    try:
        parsed = dateparser.parse(value)
    except (ValueError, OverflowError):
        logger.debug("Unparseable published date: value=%s", value)
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.isoformat()


def _split_terms(*values: str) -> list[str]:
    terms: list[str] = []
    for value in values:
        for term in (value or "").split(","):
            term = term.strip()
            if term and term not in terms:
                terms.append(term)
    return terms


class ArticleProcessor(DocumentProcessor):
    """Extract an `ArticleRecord` using configurable selectors.

    Every selector-driven field falls back to OpenGraph / `<meta>` values when
    the selectors find nothing.
    """

    kind = Classification.ARTICLE

    def __init__(self, writer: RecordWriter, selectors: ArticleSelectors | None = None) -> None:
        self.writer = writer
        self.selectors = selectors or ArticleSelectors()

    def process(self, context: ClassificationContext, *, cancel: CancelToken) -> None:
        record = self.extract(context)
        if cancel.cancelled:
            return
        self.writer.write(record)

    def extract(self, context: ClassificationContext) -> ArticleRecord:
        document = context.document
        if document is None:
            raise ValueError(f"article page has no parsed document: {context.url}")

        sel = self.selectors
        source = context.url

        title = document.select_text(sel.title) or document.meta_property("og:title") or document.title

        body = document.container_text(sel.container, sel.exclude)
        if not body:
            body = document.container_text(sel.body, sel.exclude)
        if not body:
            body = document.container_text(FALLBACK_BODY_SELECTOR, sel.exclude)
        if not body:
            body = document.main_text()

        intro = document.select_text(sel.intro) or document.meta_property("og:description")
        author = document.select_text(sel.author) or document.meta_property("article:author")
        byline_name = document.select_text(sel.byline_name) or document.select_text(sel.byline)

        published_raw = (
            document.select_attr(sel.time_ago, "datetime")
            or document.select_text(sel.published_time)
            or document.meta_property("article:published_time")
            or self._json_ld_value(context, "datePublished")
        )

        keywords = _split_terms(document.select_text(sel.keywords) or document.meta_name("keywords"))
        tags = _split_terms(*document.select_all_text(sel.tags))

        og_title = document.meta_property("og:title") or title
        og_description = document.meta_property("og:description") or intro
        description = document.select_text(sel.description) or intro

        section = document.select_text(sel.section) or document.meta_property("article:section")
        category = document.select_text(sel.category) or section

        canonical = document.select_attr(sel.canonical, "href") or source

        return ArticleRecord(
            id=url_digest(source),
            source=source,
            title=title,
            body=body,
            intro=intro,
            description=description,
            author=author,
            byline_name=byline_name,
            published_date=parse_published_date(published_raw),
            tags=tags,
            keywords=keywords,
            section=section,
            category=category,
            og_title=og_title,
            og_description=og_description,
            og_image=document.meta_property("og:image"),
            og_url=document.meta_property("og:url"),
            canonical_url=canonical,
            word_count=len(body.split()),
        )

    @staticmethod
    def _json_ld_value(context: ClassificationContext, key: str) -> str:
        if context.document is None:
            return ""
        for item in context.document.json_ld():
            value = item.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return ""


class ContentProcessor(DocumentProcessor):
    """Store any non-article page as a generic `ContentRecord`."""

    kind = Classification.CONTENT

    def __init__(self, writer: RecordWriter) -> None:
        self.writer = writer

    def process(self, context: ClassificationContext, *, cancel: CancelToken) -> None:
        record = self.extract(context)
        if cancel.cancelled:
            return
        self.writer.write(record)

    def extract(self, context: ClassificationContext) -> ContentRecord:
        document = context.document
        title = document.title if document is not None else ""
        body = document.main_text() if document is not None else ""
        if not body and document is not None:
            body = re.sub(r"\s+", " ", document.soup.get_text(" ", strip=True)).strip()

        metadata: dict[str, JSONValue] = {
            "depth": context.depth,
            "status_code": context.response.status_code,
            "content_type": context.response.content_type,
            "classification": (
                context.classification.value if context.classification else None
            ),
        }
        if document is not None:
            description = document.meta_name("description")
            if description:
                metadata["description"] = description

        return ContentRecord(
            id=url_digest(context.url),
            url=context.url,
            title=title,
            body=body,
            metadata=metadata,
        )


__all__ = [
    "ArticleProcessor",
    "ContentProcessor",
    "DocumentProcessor",
    "parse_published_date",
]
