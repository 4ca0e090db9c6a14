"""URL normalization, base-URL validation and domain-scope checks."""

from __future__ import annotations

import posixpath
import re
from typing import Sequence
from urllib.parse import (
    parse_qsl,
    quote,
    urlencode,
    urljoin,
    urlsplit,
    urlunsplit,
)

from .errors import InvalidURLError


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")
TRACKING_QUERY_PARAM_PREFIXES = ("utm_",)
TRACKING_QUERY_PARAMS = {
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
    "mkt_tok",
    "igshid",
    "ref_src",
}


def normalize_host(host: str | None) -> str:
    """Lowercase a host and strip `www.` plus leading/trailing dots."""

    normalized = (host or "").strip().lower()
    if normalized.startswith("www."):
        normalized = normalized[4:]
    return normalized.strip(".")


def host_from_url(url: str) -> str:
    """Extract normalized host from URL."""

    try:
        return normalize_host(urlsplit(url).hostname)
    except ValueError:
        return ""


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and has an allowed HTTP-like scheme."""

    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in {scheme.lower() for scheme in allowed_schemes}


def _has_default_port(scheme: str, port: int | None) -> bool:
    if port is None:
        return False
    return (scheme == "http" and port == 80) or (scheme == "https" and port == 443)


def _normalize_netloc(parsed_url, *, strip_default_port: bool) -> str:
    host = (parsed_url.hostname or "").lower()
    if not host:
        return ""

    userinfo = ""
    if parsed_url.username:
        userinfo = quote(parsed_url.username, safe="")
        if parsed_url.password:
            userinfo += ":" + quote(parsed_url.password, safe="")
        userinfo += "@"

    port: int | None
    try:
        port = parsed_url.port
    except ValueError:
        return ""

    include_port = port is not None and (
        not strip_default_port or not _has_default_port(parsed_url.scheme.lower(), port)
    )
    if include_port:
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def _normalize_path(path: str, *, remove_trailing_slash: bool) -> str:
    if not path:
        return "/"

    collapsed = re.sub(r"/{2,}", "/", path)
    normalized = posixpath.normpath(collapsed)

    if collapsed.startswith("/") and not normalized.startswith("/"):
        normalized = "/" + normalized

    if normalized in {"", "."}:
        normalized = "/"

    if remove_trailing_slash and normalized != "/":
        normalized = normalized.rstrip("/")

    return normalized or "/"


def _is_tracking_query_key(key: str) -> bool:
    normalized = key.strip().lower()
    if not normalized:
        return False
    if normalized in TRACKING_QUERY_PARAMS:
        return True
    return any(normalized.startswith(prefix) for prefix in TRACKING_QUERY_PARAM_PREFIXES)


def _normalize_query(query: str) -> str:
    if not query:
        return ""

    pairs = parse_qsl(query, keep_blank_values=True)
    pairs = [(key, value) for key, value in pairs if not _is_tracking_query_key(key)]
    pairs = sorted(pairs, key=lambda item: (item[0], item[1]))
    if not pairs:
        return ""
    return urlencode(pairs, doseq=True)


def normalize_url(
    url: str | None,
    *,
    strip_default_port: bool = True,
    remove_trailing_slash: bool = True,
    allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES,
) -> str | None:
    """Canonicalize absolute URL for dedup and frontier consistency.

    Fragments and tracking parameters are dropped and query parameters sorted.
    Returns `None` for URLs that are invalid or outside allowed schemes.
    """

    if not url:
        return None

    raw = url.strip()
    if not raw:
        return None

    try:
        parsed = urlsplit(raw)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None

    scheme = parsed.scheme.lower()
    if scheme not in {item.lower() for item in allowed_schemes}:
        return None

    netloc = _normalize_netloc(parsed, strip_default_port=strip_default_port)
    if not netloc:
        return None

    path = _normalize_path(parsed.path, remove_trailing_slash=remove_trailing_slash)
    query = _normalize_query(parsed.query)
    return urlunsplit((scheme, netloc, path, query, ""))


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve possibly relative link against base URL and normalize it."""

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
    except ValueError:
        return None
    return normalize_url(absolute)


def validate_base_url(base_url: str | None) -> str:
    """Validate a crawl base URL and return its normalized host.

    Raises `InvalidURLError` unless the URL is absolute http/https with a host.
    """

    if not base_url or not base_url.strip():
        raise InvalidURLError(str(base_url), "base URL cannot be empty")

    try:
        parsed = urlsplit(base_url.strip())
    except ValueError as exc:
        raise InvalidURLError(base_url, f"unparseable base URL ({exc})") from exc

    if parsed.scheme.lower() not in DEFAULT_ALLOWED_SCHEMES:
        raise InvalidURLError(base_url, "base URL scheme must be http or https")

    if normalize_url(base_url) is None:
        raise InvalidURLError(base_url, "base URL has no valid host")

    host = host_from_url(base_url)
    if not host:
        raise InvalidURLError(base_url, "base URL has no valid host")
    return host


def is_in_scope(candidate_url: str, allowed_host: str, *, include_subdomains: bool = False) -> bool:
    """Return True when candidate URL's host is the allowed host.

    Subdomains only match when `include_subdomains` is set.
    """

    if not is_http_url(candidate_url):
        return False

    host = host_from_url(candidate_url)
    allowed = normalize_host(allowed_host)
    if not host or not allowed:
        return False

    if host == allowed:
        return True
    return include_subdomains and host.endswith("." + allowed)


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "TRACKING_QUERY_PARAM_PREFIXES",
    "TRACKING_QUERY_PARAMS",
    "host_from_url",
    "is_http_url",
    "is_in_scope",
    "normalize_host",
    "normalize_url",
    "resolve_url",
    "validate_base_url",
]
