"""Crawler error taxonomy.

Only `ConfigurationError`, an invalid base URL and cancellation end a crawl
early. Every other error is scoped to the page that raised it.
"""

from __future__ import annotations


class CrawlError(Exception):
    """Base class for all crawler errors."""


class ConfigurationError(CrawlError, ValueError):
    """Invalid job configuration, raised before any network activity."""


class InvalidURLError(CrawlError, ValueError):
    """URL does not parse as an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "invalid URL") -> None:
        super().__init__(f"{reason}: {url!r}")
        self.url = url
        self.reason = reason


class IgnorableError(CrawlError):
    """Expected race that does not indicate a real fault."""

    def __init__(self, url: str, message: str | None = None) -> None:
        super().__init__(message or f"{self.__class__.__name__}: {url}")
        self.url = url


class AlreadyVisitedError(IgnorableError):
    """URL was already enqueued or fetched in this job."""


class MaxDepthError(IgnorableError):
    """URL would exceed the job's maximum depth."""


class ForbiddenDomainError(IgnorableError):
    """URL host is outside the job's allowed domain."""


class TransportError(CrawlError):
    """Per-page fetch failure: network error, timeout or non-2xx status."""

    def __init__(self, url: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ProcessorError(CrawlError):
    """Downstream document processor failed for one page."""

    def __init__(self, url: str, kind: str, cause: Exception) -> None:
        super().__init__(f"{kind} processor failed for {url}: {cause.__class__.__name__}: {cause}")
        self.url = url
        self.kind = kind
        self.__cause__ = cause


class CrawlCancelledError(CrawlError):
    """Blocking operation aborted because the job was cancelled or timed out."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(f"crawl {reason}")
        self.reason = reason


__all__ = [
    "AlreadyVisitedError",
    "ConfigurationError",
    "CrawlCancelledError",
    "CrawlError",
    "ForbiddenDomainError",
    "IgnorableError",
    "InvalidURLError",
    "MaxDepthError",
    "ProcessorError",
    "TransportError",
]
