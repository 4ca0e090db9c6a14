"""Parser package exports."""

from .html_parser import Anchor, HTMLDocument, HTMLParser

__all__ = [
    "Anchor",
    "HTMLDocument",
    "HTMLParser",
]
