"""Single-domain news crawler: frontier, rate limiting, classification and dispatch."""

from .cancel import CancelToken
from .classifier import ContentClassifier, classify
from .completion import CompletionDetector, CompletionSignal, CrawlState
from .config import ArticleSelectors, ClassifierConfig, CrawlConfig, load_config, parse_duration, save_config
from .context import ClassificationContext
from .dispatcher import ProcessorDispatcher
from .engine import CrawlJob
from .errors import (
    AlreadyVisitedError,
    ConfigurationError,
    CrawlCancelledError,
    CrawlError,
    ForbiddenDomainError,
    IgnorableError,
    InvalidURLError,
    MaxDepthError,
    ProcessorError,
    TransportError,
)
from .fetcher import Fetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .limiter import RateLimiter
from .links import LinkExtractor, LinkReport
from .parsers import HTMLDocument, HTMLParser
from .processors import ArticleProcessor, ContentProcessor, DocumentProcessor
from .stats import StatsCollector
from .storage import JSONLWriter, OutputLayout, RecordWriter
from .types import (
    ArticleRecord,
    Classification,
    ContentKind,
    ContentRecord,
    CrawlSummary,
    DispatchOutcome,
    FetchRequest,
    FetchResponse,
    infer_content_kind,
    utc_now_iso,
)
from .url import host_from_url, is_in_scope, normalize_url, resolve_url, validate_base_url

__all__ = [
    "AlreadyVisitedError",
    "ArticleProcessor",
    "ArticleRecord",
    "ArticleSelectors",
    "CancelToken",
    "Classification",
    "ClassificationContext",
    "ClassifierConfig",
    "CompletionDetector",
    "CompletionSignal",
    "ConfigurationError",
    "ContentClassifier",
    "ContentKind",
    "ContentProcessor",
    "ContentRecord",
    "CrawlCancelledError",
    "CrawlConfig",
    "CrawlError",
    "CrawlJob",
    "CrawlState",
    "CrawlSummary",
    "DispatchOutcome",
    "DocumentProcessor",
    "EnqueueResult",
    "EnqueueStatus",
    "FetchRequest",
    "FetchResponse",
    "Fetcher",
    "ForbiddenDomainError",
    "Frontier",
    "HTMLDocument",
    "HTMLParser",
    "IgnorableError",
    "InvalidURLError",
    "JSONLWriter",
    "LinkExtractor",
    "LinkReport",
    "MaxDepthError",
    "OutputLayout",
    "ProcessorDispatcher",
    "ProcessorError",
    "RateLimiter",
    "RecordWriter",
    "StatsCollector",
    "TransportError",
    "classify",
    "host_from_url",
    "infer_content_kind",
    "is_in_scope",
    "load_config",
    "normalize_url",
    "parse_duration",
    "resolve_url",
    "save_config",
    "utc_now_iso",
    "validate_base_url",
]
