"""Article vs. content classification from metadata and URL shape.

Rules are tried in `ClassifierConfig.rule_order`; the first rule that returns a
classification wins and CONTENT is the fallback:

- `og_type`: `<meta property="og:type" content="article">`.
- `schema_type`: `<meta name="type">` or a JSON-LD `@type` containing "article".
- `listing_url`: path looks like a listing page, which is never an article.
- `article_url`: path looks like an article and the page has a time/byline
  style element to back that up.
"""

from __future__ import annotations

from typing import Callable
from urllib.parse import urlsplit

from .config import ClassifierConfig
from .context import ClassificationContext
from .parsers import HTMLDocument
from .types import Classification


Rule = Callable[[HTMLDocument, str], "Classification | None"]


def _path_for_matching(url: str) -> str:
    try:
        path = urlsplit(url).path or "/"
    except ValueError:
        return "/"
    # Trailing slash so "/news" matches the "/news/" pattern.
    return path.lower() if path.endswith("/") else path.lower() + "/"


class ContentClassifier:
    """Deterministic, side-effect free page classifier."""

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self.config = config or ClassifierConfig()
        self._rules: dict[str, Rule] = {
            "og_type": self._og_type_rule,
            "schema_type": self._schema_type_rule,
            "listing_url": self._listing_url_rule,
            "article_url": self._article_url_rule,
        }

    def classify(self, document: HTMLDocument | None, url: str) -> Classification:
        if document is None:
            return Classification.UNCLASSIFIABLE

        for name in self.config.rule_order:
            result = self._rules[name](document, url)
            if result is not None:
                return result
        return Classification.CONTENT

    def classify_context(self, context: ClassificationContext) -> Classification:
        """Classify the page in `context`, record the signals and mark it."""

        classification = self.classify(context.document, context.url)
        if context.document is not None:
            context.metadata.update(self.signals(context.document, context.url))
        context.mark(classification)
        return classification

    def signals(self, document: HTMLDocument, url: str) -> dict[str, str | bool]:
        """Raw inputs the rules look at, for logging and records."""

        path = _path_for_matching(url)
        return {
            "og_type": document.meta_property(self.config.og_type_property),
            "schema_type": document.meta_name(self.config.schema_type_name),
            "listing_url": self._matches(path, self.config.listing_patterns),
            "article_url": self._matches(path, self.config.article_patterns),
        }

    def is_listing_url(self, url: str) -> bool:
        return self._matches(_path_for_matching(url), self.config.listing_patterns)

    def _og_type_rule(self, document: HTMLDocument, url: str) -> Classification | None:
        og_type = document.meta_property(self.config.og_type_property)
        if og_type.strip().lower() == "article":
            return Classification.ARTICLE
        return None

    def _schema_type_rule(self, document: HTMLDocument, url: str) -> Classification | None:
        candidates = [document.meta_name(self.config.schema_type_name)]
        if self.config.use_json_ld:
            candidates.extend(document.json_ld_types())
        if any("article" in candidate.lower() for candidate in candidates if candidate):
            return Classification.ARTICLE
        return None

    def _listing_url_rule(self, document: HTMLDocument, url: str) -> Classification | None:
        if self.is_listing_url(url):
            return Classification.CONTENT
        return None

    def _article_url_rule(self, document: HTMLDocument, url: str) -> Classification | None:
        if not self._matches(_path_for_matching(url), self.config.article_patterns):
            return None
        if document.has_any(self.config.evidence_selectors):
            return Classification.ARTICLE
        return None

    @staticmethod
    def _matches(path: str, patterns: tuple[str, ...]) -> bool:
        return any(pattern.lower() in path for pattern in patterns)


def classify(
    document: HTMLDocument | None,
    url: str,
    config: ClassifierConfig | None = None,
) -> Classification:
    """Classify one page with a throwaway `ContentClassifier`."""

    return ContentClassifier(config).classify(document, url)


__all__ = [
    "ContentClassifier",
    "classify",
]
