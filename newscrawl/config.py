"""Typed crawl job configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_ARTICLE_PATTERNS,
    DEFAULT_EVIDENCE_SELECTORS,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_INCLUDE_SUBDOMAINS,
    DEFAULT_JOB_TIMEOUT_SECONDS,
    DEFAULT_LISTING_PATTERNS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_OG_TYPE_PROPERTY,
    DEFAULT_PARALLELISM,
    DEFAULT_RANDOM_DELAY_SECONDS,
    DEFAULT_RATE_LIMIT_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_RULE_ORDER,
    DEFAULT_SCHEMA_TYPE_NAME,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .errors import ConfigurationError
from .types import JSONDict
from .url import normalize_url, validate_base_url


KNOWN_RULES = frozenset({"og_type", "schema_type", "listing_url", "article_url"})

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Any, key: str) -> float | None:
    """Parse seconds from a number or a duration string like "2s" or "500ms"."""

    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration for '{key}': {value!r}")
    match = _DURATION_RE.match(value) if isinstance(value, str) else None
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif match:
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    else:
        raise ConfigurationError(f"Invalid duration for '{key}': {value!r}")
    if not math.isfinite(seconds):
        raise ConfigurationError(f"Invalid duration for '{key}': {value!r}")
    return seconds


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"Invalid int for '{key}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigurationError(f"Invalid bool for '{key}': {value!r}")


def _as_str_tuple(value: Any, key: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    raise ConfigurationError(f"Invalid list for '{key}': {value!r}")


@dataclass(frozen=True, slots=True)
class ClassifierConfig:
    """Article/content classification heuristics.

    `rule_order` lists the rules tried before the CONTENT fallback. Rules not
    listed are skipped.
    """

    listing_patterns: tuple[str, ...] = DEFAULT_LISTING_PATTERNS
    article_patterns: tuple[str, ...] = DEFAULT_ARTICLE_PATTERNS
    og_type_property: str = DEFAULT_OG_TYPE_PROPERTY
    schema_type_name: str = DEFAULT_SCHEMA_TYPE_NAME
    evidence_selectors: tuple[str, ...] = DEFAULT_EVIDENCE_SELECTORS
    use_json_ld: bool = True
    rule_order: tuple[str, ...] = DEFAULT_RULE_ORDER

    def __post_init__(self) -> None:
        unknown = [rule for rule in self.rule_order if rule not in KNOWN_RULES]
        if unknown:
            raise ConfigurationError(
                f"Unknown classifier rules {unknown}. Supported: {sorted(KNOWN_RULES)}"
            )
        if len(set(self.rule_order)) != len(self.rule_order):
            raise ConfigurationError("classifier rule_order must not repeat rules")

    def to_dict(self) -> JSONDict:
        return {
            "listing_patterns": list(self.listing_patterns),
            "article_patterns": list(self.article_patterns),
            "og_type_property": self.og_type_property,
            "schema_type_name": self.schema_type_name,
            "evidence_selectors": list(self.evidence_selectors),
            "use_json_ld": self.use_json_ld,
            "rule_order": list(self.rule_order),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ClassifierConfig":
        kwargs: dict[str, Any] = {}
        for key in (
            "listing_patterns",
            "article_patterns",
            "evidence_selectors",
            "rule_order",
        ):
            if key in payload:
                kwargs[key] = _as_str_tuple(payload[key], key)
        for key in ("og_type_property", "schema_type_name"):
            if key in payload:
                kwargs[key] = str(payload[key])
        if "use_json_ld" in payload:
            kwargs["use_json_ld"] = _as_bool(payload["use_json_ld"], "use_json_ld")
        return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class ArticleSelectors:
    """CSS selectors used to extract article fields.

    Comma-separated selectors are tried in order; the first non-empty match wins.
    """

    container: str = "article, main, .article-content"
    title: str = "h1, .article-title"
    body: str = ".article-body, article"
    intro: str = ".article-intro, .lead"
    byline: str = ".byline, .article-author"
    byline_name: str = ".byline .name, .author-name"
    author: str = "meta[name='author'], meta[property='article:author']"
    published_time: str = "meta[property='article:published_time']"
    time_ago: str = "time"
    section: str = "meta[property='article:section']"
    category: str = "meta[property='article:section']"
    keywords: str = "meta[name='keywords']"
    tags: str = "meta[property='article:tag']"
    description: str = "meta[name='description'], meta[property='og:description']"
    canonical: str = "link[rel='canonical']"
    exclude: tuple[str, ...] = (
        "script",
        "style",
        "nav",
        "footer",
        "aside",
        ".share-buttons",
        ".advertisement",
        ".comments-section",
        ".related-posts",
        ".sidebar",
    )

    def to_dict(self) -> JSONDict:
        payload: JSONDict = {}
        for item in fields(self):
            value = getattr(self, item.name)
            payload[item.name] = list(value) if isinstance(value, tuple) else value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ArticleSelectors":
        names = {item.name for item in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in payload.items():
            if key not in names:
                raise ConfigurationError(f"Unknown article selector: {key!r}")
            kwargs[key] = _as_str_tuple(value, key) if key == "exclude" else str(value)
        return cls(**kwargs)


@dataclass(slots=True)
class CrawlConfig:
    """Configuration for one crawl job, validated at construction."""

    base_url: str

    max_depth: int = DEFAULT_MAX_DEPTH
    parallelism: int = DEFAULT_PARALLELISM
    rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS
    random_delay_seconds: float = DEFAULT_RANDOM_DELAY_SECONDS

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    job_timeout_seconds: float | None = DEFAULT_JOB_TIMEOUT_SECONDS
    include_subdomains: bool = DEFAULT_INCLUDE_SUBDOMAINS

    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))

    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    selectors: ArticleSelectors = field(default_factory=ArticleSelectors)

    allowed_host: str = field(init=False)

    def __post_init__(self) -> None:
        self.allowed_host = validate_base_url(self.base_url)
        self.base_url = normalize_url(self.base_url) or self.base_url.strip()

        # Direct construction gets the same coercion as from_dict.
        self.max_depth = _as_int(self.max_depth, "max_depth")
        self.parallelism = _as_int(self.parallelism, "parallelism")
        self.retries = _as_int(self.retries, "retries")
        self.rate_limit_seconds = parse_duration(self.rate_limit_seconds, "rate_limit_seconds")
        self.random_delay_seconds = parse_duration(self.random_delay_seconds, "random_delay_seconds")
        self.timeout_seconds = parse_duration(self.timeout_seconds, "timeout_seconds")
        self.retry_backoff_seconds = parse_duration(
            self.retry_backoff_seconds, "retry_backoff_seconds"
        )
        self.job_timeout_seconds = parse_duration(self.job_timeout_seconds, "job_timeout_seconds")
        self.include_subdomains = _as_bool(self.include_subdomains, "include_subdomains")

        for key in (
            "rate_limit_seconds",
            "random_delay_seconds",
            "timeout_seconds",
            "retry_backoff_seconds",
        ):
            if getattr(self, key) is None:
                raise ConfigurationError(f"{key} must be set")

        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0")
        if self.parallelism < 1:
            raise ConfigurationError("parallelism must be >= 1")
        if self.rate_limit_seconds < 0:
            raise ConfigurationError("rate_limit_seconds must be >= 0")
        if self.random_delay_seconds < 0:
            raise ConfigurationError("random_delay_seconds must be >= 0")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be > 0")
        if self.retries < 0:
            raise ConfigurationError("retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ConfigurationError("retry_backoff_seconds must be >= 0")
        if self.job_timeout_seconds is not None and self.job_timeout_seconds <= 0:
            raise ConfigurationError("job_timeout_seconds must be > 0 when set")

    def headers(self) -> dict[str, str]:
        """Return request headers with the configured user agent."""

        merged = dict(self.default_headers)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "base_url": self.base_url,
            "max_depth": self.max_depth,
            "parallelism": self.parallelism,
            "rate_limit_seconds": self.rate_limit_seconds,
            "random_delay_seconds": self.random_delay_seconds,
            "timeout_seconds": self.timeout_seconds,
            "retries": self.retries,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "job_timeout_seconds": self.job_timeout_seconds,
            "include_subdomains": self.include_subdomains,
            "user_agent": self.user_agent,
            "default_headers": dict(self.default_headers),
            "classifier": self.classifier.to_dict(),
            "selectors": {"article": self.selectors.to_dict()},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary.

        Accepts flat keys or a nested `crawler:` block, and the short duration
        keys `rate_limit`/`random_delay` (e.g. "2s").
        """

        merged: dict[str, Any] = dict(payload)
        nested = merged.pop("crawler", None)
        if nested is not None:
            if not isinstance(nested, Mapping):
                raise ConfigurationError("'crawler' block must be a mapping")
            for key, value in nested.items():
                merged.setdefault(key, value)

        base_url = merged.get("base_url") or merged.get("url")
        if not base_url:
            raise ConfigurationError("Config missing required key: 'base_url'")

        def duration(*keys: str, default: float | None) -> float | None:
            for key in keys:
                if merged.get(key) is not None:
                    return parse_duration(merged[key], key)
            return default

        selectors_payload = merged.get("selectors") or {}
        if not isinstance(selectors_payload, Mapping):
            raise ConfigurationError("'selectors' must be a mapping")
        article_selectors = selectors_payload.get("article", {})

        return cls(
            base_url=str(base_url),
            max_depth=_as_int(merged.get("max_depth", DEFAULT_MAX_DEPTH), "max_depth"),
            parallelism=_as_int(merged.get("parallelism", DEFAULT_PARALLELISM), "parallelism"),
            rate_limit_seconds=duration(
                "rate_limit_seconds", "rate_limit", default=DEFAULT_RATE_LIMIT_SECONDS
            ),
            random_delay_seconds=duration(
                "random_delay_seconds", "random_delay", default=DEFAULT_RANDOM_DELAY_SECONDS
            ),
            timeout_seconds=duration(
                "timeout_seconds", "timeout", default=DEFAULT_TIMEOUT_SECONDS
            ),
            retries=_as_int(merged.get("retries", DEFAULT_RETRIES), "retries"),
            retry_backoff_seconds=duration(
                "retry_backoff_seconds", "retry_backoff", default=DEFAULT_RETRY_BACKOFF_SECONDS
            ),
            job_timeout_seconds=duration(
                "job_timeout_seconds", "job_timeout", default=DEFAULT_JOB_TIMEOUT_SECONDS
            ),
            include_subdomains=_as_bool(
                merged.get("include_subdomains", DEFAULT_INCLUDE_SUBDOMAINS),
                "include_subdomains",
            ),
            user_agent=str(merged.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={
                str(k): str(v)
                for k, v in dict(merged.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            classifier=ClassifierConfig.from_dict(merged.get("classifier") or {}),
            selectors=ArticleSelectors.from_dict(article_selectors),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigurationError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ConfigurationError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    suffix = out_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigurationError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")


__all__ = [
    "ArticleSelectors",
    "ClassifierConfig",
    "CrawlConfig",
    "load_config",
    "parse_duration",
    "save_config",
]
