"""Core type definitions for the crawl engine.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from hashlib import sha256
from typing import Mapping


class ContentKind(str, Enum):
    """Normalized content categories used by fetch/parse."""

    HTML = "html"
    TEXT = "text"
    BINARY = "binary"
    UNKNOWN = "unknown"


class Classification(str, Enum):
    """Terminal page classification used for processor dispatch."""

    ARTICLE = "article"
    CONTENT = "content"
    UNCLASSIFIABLE = "unclassifiable"


class DispatchOutcome(str, Enum):
    """What the dispatcher did with one page."""

    ARTICLE = "article"
    CONTENT = "content"
    NONE = "none"
    FAILED = "failed"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for records/JSONL."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def url_digest(url: str) -> str:
    return sha256(url.encode("utf-8")).hexdigest()


def infer_content_kind(content_type: str | None, url: str) -> ContentKind:
    """Infer coarse content kind from HTTP content type and URL."""

    normalized = (content_type or "").split(";", maxsplit=1)[0].strip().lower()
    lower_url = url.lower()

    if normalized in {"text/html", "application/xhtml+xml"}:
        return ContentKind.HTML
    if not normalized and lower_url.endswith((".html", ".htm")):
        return ContentKind.HTML
    if normalized.startswith("text/"):
        return ContentKind.TEXT
    if normalized:
        return ContentKind.BINARY
    return ContentKind.UNKNOWN


@dataclass(frozen=True, slots=True)
class FetchRequest:
    """One pending fetch tracked by the frontier."""

    url: str
    depth: int
    origin_url: str | None = None
    discovered_at: str = field(default_factory=utc_now_iso, compare=False)


@dataclass(slots=True)
class FetchResponse:
    """Result of downloading one URL successfully."""

    requested_url: str
    final_url: str
    status_code: int
    content_type: str | None
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    encoding: str | None = None
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def content_kind(self) -> ContentKind:
        return infer_content_kind(self.content_type, self.final_url or self.requested_url)

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


@dataclass(slots=True)
class ArticleRecord:
    """Structured article extracted from one page."""

    id: str
    source: str
    title: str
    body: str
    intro: str = ""
    description: str = ""
    author: str = ""
    byline_name: str = ""
    published_date: str | None = None
    tags: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    section: str = ""
    category: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    og_url: str = ""
    canonical_url: str = ""
    word_count: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "id": self.id,
            "source": self.source,
            "title": self.title,
            "body": self.body,
            "intro": self.intro,
            "description": self.description,
            "author": self.author,
            "byline_name": self.byline_name,
            "published_date": self.published_date,
            "tags": list(self.tags),
            "keywords": list(self.keywords),
            "section": self.section,
            "category": self.category,
            "og_title": self.og_title,
            "og_description": self.og_description,
            "og_image": self.og_image,
            "og_url": self.og_url,
            "canonical_url": self.canonical_url,
            "word_count": self.word_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(slots=True)
class ContentRecord:
    """Generic page content that was not classified as an article."""

    id: str
    url: str
    title: str
    body: str
    type: str = Classification.CONTENT.value
    metadata: dict[str, JSONValue] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "body": self.body,
            "type": self.type,
            "metadata": dict(self.metadata),
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class CrawlSummary:
    """Outcome of one finished crawl job."""

    base_url: str
    state: str
    reason: str
    pages_fetched: int
    pages_processed: int
    errors: int
    duration_seconds: float
    stats: Mapping[str, JSONValue] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.reason != "drained"

    def to_json(self) -> JSONDict:
        return {
            "base_url": self.base_url,
            "state": self.state,
            "reason": self.reason,
            "pages_fetched": self.pages_fetched,
            "pages_processed": self.pages_processed,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
            "stats": dict(self.stats),
        }


__all__ = [
    "ArticleRecord",
    "Classification",
    "ContentKind",
    "ContentRecord",
    "CrawlSummary",
    "DispatchOutcome",
    "FetchRequest",
    "FetchResponse",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "infer_content_kind",
    "url_digest",
    "utc_now_iso",
]
