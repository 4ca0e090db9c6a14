"""Default values shared by config, fetcher, limiter and classifier."""

from __future__ import annotations

DEFAULT_MAX_DEPTH = 2
DEFAULT_PARALLELISM = 2
DEFAULT_RATE_LIMIT_SECONDS = 2.0
DEFAULT_RANDOM_DELAY_SECONDS = 0.0

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_RETRIES = 1
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_JOB_TIMEOUT_SECONDS: float | None = None
DEFAULT_INCLUDE_SUBDOMAINS = False

DEFAULT_USER_AGENT = "newscrawl/0.1 (+https://example.invalid/newscrawl)"
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}

# Granularity at which blocked workers re-check cancellation.
CANCEL_POLL_SECONDS = 0.05
WORKER_JOIN_TIMEOUT_SECONDS = 5.0

DEFAULT_LISTING_PATTERNS: tuple[str, ...] = (
    "/category/",
    "/tag/",
    "/topics/",
    "/search/",
    "/archive/",
    "/author/",
    "/index/",
    "/feed/",
    "/rss/",
)
DEFAULT_ARTICLE_PATTERNS: tuple[str, ...] = (
    "/article/",
    "/news/",
    "/story/",
    "/post/",
    "/opp-beat/",
    "/local-news/",
)
DEFAULT_OG_TYPE_PROPERTY = "og:type"
DEFAULT_SCHEMA_TYPE_NAME = "type"
DEFAULT_EVIDENCE_SELECTORS: tuple[str, ...] = ("time", ".details", ".byline")
DEFAULT_RULE_ORDER: tuple[str, ...] = ("og_type", "schema_type", "listing_url", "article_url")

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
