"""HTML document wrapper: metadata lookups, link discovery and text extraction."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterator

from bs4 import BeautifulSoup, Tag
from readability import Document as ReadabilityDocument
from soupsieve import SelectorSyntaxError
import trafilatura

from ..types import ContentKind, FetchResponse


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Anchor:
    """One link element found in a document."""

    href: str
    text: str


def _split_selectors(selector: str) -> list[str]:
    return [part.strip() for part in (selector or "").split(",") if part.strip()]


class HTMLDocument:
    """Parsed HTML page bound to the URL it was fetched from.

    Read-only helpers only: callers that need to strip elements get a fresh
    copy from `container_text`.
    """

    def __init__(self, html: str | bytes, *, url: str) -> None:
        if isinstance(html, bytes):
            html = html.decode("utf-8", errors="replace")
        self.url = url
        self.html = html
        self.soup = BeautifulSoup(html, "lxml")

    @property
    def title(self) -> str:
        if self.soup.title and self.soup.title.get_text(strip=True):
            return self.soup.title.get_text(" ", strip=True)
        heading = self.soup.find(["h1", "h2"])
        if heading:
            return heading.get_text(" ", strip=True)
        return ""

    def meta_property(self, prop: str) -> str:
        """Return `<meta property=...>` content, or an empty string."""

        element = self.soup.find("meta", attrs={"property": prop})
        return str(element.get("content") or "").strip() if element else ""

    def meta_name(self, name: str) -> str:
        """Return `<meta name=...>` content, or an empty string."""

        element = self.soup.find("meta", attrs={"name": name})
        return str(element.get("content") or "").strip() if element else ""

    def has_any(self, selectors: tuple[str, ...] | list[str]) -> bool:
        """Return True if any CSS selector matches at least one element."""

        for selector in selectors:
            try:
                if self.soup.select_one(selector) is not None:
                    return True
            except (SelectorSyntaxError, ValueError):
                logger.debug("Invalid CSS selector skipped: selector=%s", selector)
        return False

    def select_text(self, selector: str) -> str:
        """Text of the first non-empty match across comma-separated selectors.

        `<meta>` matches yield their `content` attribute.
        """

        for sel in _split_selectors(selector):
            for element in self._select(sel):
                if element.name == "meta":
                    value = str(element.get("content") or "").strip()
                else:
                    value = element.get_text(" ", strip=True)
                if value:
                    return value
        return ""

    def select_all_text(self, selector: str) -> list[str]:
        values: list[str] = []
        for sel in _split_selectors(selector):
            for element in self._select(sel):
                if element.name == "meta":
                    value = str(element.get("content") or "").strip()
                else:
                    value = element.get_text(" ", strip=True)
                if value and value not in values:
                    values.append(value)
        return values

    def select_attr(self, selector: str, attr: str) -> str:
        for sel in _split_selectors(selector):
            for element in self._select(sel):
                value = str(element.get(attr) or "").strip()
                if value:
                    return value
        return ""

    def container_text(self, selector: str, excludes: tuple[str, ...] = ()) -> str:
        """Text of the first matching container with `excludes` removed."""

        for sel in _split_selectors(selector):
            matches = self._select(sel)
            if not matches:
                continue
            container = BeautifulSoup(str(matches[0]), "lxml")
            for exclude in excludes:
                try:
                    for element in container.select(exclude):
                        element.decompose()
                except (SelectorSyntaxError, ValueError):
                    continue
            text = container.get_text(" ", strip=True)
            if text:
                return re.sub(r"\s+", " ", text).strip()
        return ""

    def json_ld(self) -> list[dict[str, Any]]:
        """Return every JSON-LD object in the page, flattening `@graph`."""

        objects: list[dict[str, Any]] = []
        for script in self.soup.find_all("script", attrs={"type": "application/ld+json"}):
            raw = script.string or script.get_text() or ""
            if not raw.strip():
                continue
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Unparseable JSON-LD block skipped: url=%s", self.url)
                continue
            stack = payload if isinstance(payload, list) else [payload]
            for item in stack:
                if not isinstance(item, dict):
                    continue
                objects.append(item)
                graph = item.get("@graph")
                if isinstance(graph, list):
                    objects.extend(node for node in graph if isinstance(node, dict))
        return objects

    def json_ld_types(self) -> list[str]:
        types: list[str] = []
        for item in self.json_ld():
            value = item.get("@type")
            values = value if isinstance(value, list) else [value]
            types.extend(str(entry) for entry in values if entry)
        return types

    def anchors(self) -> Iterator[Anchor]:
        """Yield every `<a href>`/`<area href>` in document order, duplicates included."""

        for element in self.soup.find_all(["a", "area"]):
            href = element.get("href")
            if not href:
                continue
            yield Anchor(href=str(href), text=element.get_text(" ", strip=True))

    def main_text(self) -> str:
        """Main readable text, merging Trafilatura and Readability output."""

        paragraphs: list[str] = []
        seen: set[str] = set()
        for text in (self._trafilatura_text(), self._readability_text()):
            for paragraph in _split_paragraphs(text):
                key = re.sub(r"[^a-z0-9]+", " ", paragraph.lower()).strip()
                if not key or key in seen:
                    continue
                seen.add(key)
                paragraphs.append(paragraph)
        return "\n\n".join(paragraphs).strip()

    def _select(self, selector: str) -> list[Tag]:
        try:
            return list(self.soup.select(selector))
        except (SelectorSyntaxError, ValueError):
            logger.debug("Invalid CSS selector skipped: selector=%s", selector)
            return []

    def _trafilatura_text(self) -> str:
        try:
            extracted = trafilatura.extract(
                self.html,
                output_format="txt",
                include_comments=False,
                include_tables=True,
                include_images=False,
                deduplicate=True,
                favor_precision=True,
            )
        except Exception as exc:
            logger.debug("Trafilatura extraction failed: url=%s error=%s", self.url, exc)
            return ""
        return (extracted or "").strip()

    def _readability_text(self) -> str:
        try:
            summary_html = ReadabilityDocument(self.html).summary()
        except Exception as exc:
            logger.debug("Readability extraction failed: url=%s error=%s", self.url, exc)
            return ""
        if isinstance(summary_html, bytes):
            summary_html = summary_html.decode("utf-8", errors="replace")
        if not summary_html:
            return ""
        return BeautifulSoup(summary_html, "lxml").get_text("\n", strip=True).strip()


def _split_paragraphs(text: str) -> list[str]:
    normalized = text.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return []

    paragraphs: list[str] = []
    for chunk in re.split(r"\n\s*\n+", normalized):
        compact = re.sub(r"[ \t]+", " ", chunk).strip()
        if compact:
            paragraphs.append(compact)
    return paragraphs


class HTMLParser:
    """Turn fetch responses into `HTMLDocument`s; non-HTML yields None."""

    def parse(self, response: FetchResponse) -> HTMLDocument | None:
        if response.content_kind != ContentKind.HTML:
            return None
        if not response.body:
            return None
        return HTMLDocument(response.text, url=response.final_url or response.requested_url)


__all__ = [
    "Anchor",
    "HTMLDocument",
    "HTMLParser",
]
