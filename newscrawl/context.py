"""Per-page state carried through classify → dispatch → link discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .parsers import HTMLDocument
from .types import Classification, FetchRequest, FetchResponse


@dataclass(slots=True)
class ClassificationContext:
    """Mutable bag for one fetched page, owned by a single worker thread.

    `classification` is tri-state while in progress: None (unknown), then
    ARTICLE or CONTENT once marked. UNCLASSIFIABLE is used when there is no
    parsed document.
    """

    request: FetchRequest
    response: FetchResponse
    document: HTMLDocument | None = None
    classification: Classification | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.response.final_url or self.request.url

    @property
    def depth(self) -> int:
        return self.request.depth

    @property
    def is_article(self) -> bool:
        return self.classification == Classification.ARTICLE

    @property
    def classified(self) -> bool:
        return self.classification is not None

    def mark(self, classification: Classification) -> None:
        if self.classification is not None and self.classification != classification:
            raise ValueError(
                f"page already classified as {self.classification.value}: {self.url}"
            )
        self.classification = classification

    def mark_article(self) -> None:
        self.mark(Classification.ARTICLE)

    def mark_content(self) -> None:
        self.mark(Classification.CONTENT)


__all__ = ["ClassificationContext"]
