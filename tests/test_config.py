"""Tests for crawl configuration parsing and validation."""

from __future__ import annotations

import json

import pytest

from newscrawl.config import (
    ArticleSelectors,
    ClassifierConfig,
    CrawlConfig,
    load_config,
    parse_duration,
    save_config,
)
from newscrawl.constants import DEFAULT_RULE_ORDER
from newscrawl.errors import ConfigurationError, InvalidURLError


class TestCrawlConfig:
    def test_defaults(self):
        config = CrawlConfig(base_url="https://www.example.com")
        assert config.allowed_host == "example.com"
        assert config.base_url == "https://www.example.com/"
        assert config.max_depth == 2
        assert config.parallelism == 2
        assert config.classifier.rule_order == DEFAULT_RULE_ORDER

    def test_headers_include_user_agent(self):
        config = CrawlConfig(base_url="https://example.com", user_agent="bot/1.0")
        assert config.headers()["User-Agent"] == "bot/1.0"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_depth": -1},
            {"parallelism": 0},
            {"rate_limit_seconds": -0.5},
            {"random_delay_seconds": -1.0},
            {"timeout_seconds": 0},
            {"retries": -1},
            {"job_timeout_seconds": 0},
            {"parallelism": 1.5},
            {"max_depth": "two"},
            {"retries": None},
            {"rate_limit_seconds": float("nan")},
            {"timeout_seconds": float("inf")},
            {"rate_limit_seconds": None},
            {"include_subdomains": "yes"},
        ],
    )
    def test_invalid_values_raise(self, overrides):
        with pytest.raises(ConfigurationError):
            CrawlConfig(base_url="https://example.com", **overrides)

    def test_direct_construction_coerces_types(self):
        config = CrawlConfig(
            base_url="https://example.com",
            max_depth="2",
            parallelism=3.0,
            rate_limit_seconds="500ms",
            job_timeout_seconds="1m",
        )
        assert config.max_depth == 2
        assert isinstance(config.parallelism, int) and config.parallelism == 3
        assert config.rate_limit_seconds == pytest.approx(0.5)
        assert config.job_timeout_seconds == pytest.approx(60.0)

    def test_invalid_base_url_raises(self):
        with pytest.raises(InvalidURLError):
            CrawlConfig(base_url="ftp://example.com")


class TestFromDict:
    def test_nested_crawler_block_and_durations(self):
        config = CrawlConfig.from_dict(
            {
                "crawler": {
                    "base_url": "https://example.com",
                    "max_depth": 3,
                    "parallelism": 4,
                    "rate_limit": "500ms",
                    "random_delay": "1s",
                    "job_timeout": "2m",
                }
            }
        )
        assert config.max_depth == 3
        assert config.parallelism == 4
        assert config.rate_limit_seconds == pytest.approx(0.5)
        assert config.random_delay_seconds == pytest.approx(1.0)
        assert config.job_timeout_seconds == pytest.approx(120.0)

    def test_url_alias(self):
        config = CrawlConfig.from_dict({"url": "https://example.com/start"})
        assert config.base_url == "https://example.com/start"

    def test_missing_base_url(self):
        with pytest.raises(ConfigurationError):
            CrawlConfig.from_dict({"max_depth": 1})

    def test_null_duration_falls_back_to_default(self):
        config = CrawlConfig.from_dict({"base_url": "https://example.com", "rate_limit": None})
        assert config.rate_limit_seconds == 2.0

    def test_article_selectors(self):
        config = CrawlConfig.from_dict(
            {
                "base_url": "https://example.com",
                "selectors": {"article": {"title": "h1.headline", "exclude": [".ad"]}},
            }
        )
        assert config.selectors.title == "h1.headline"
        assert config.selectors.exclude == (".ad",)

    def test_bad_int(self):
        with pytest.raises(ConfigurationError):
            CrawlConfig.from_dict({"base_url": "https://example.com", "max_depth": "deep"})


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [("2s", 2.0), ("500ms", 0.5), ("1m", 60.0), ("1h", 3600.0), (1.5, 1.5), ("3", 3.0)],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value, "d") == pytest.approx(expected)

    def test_none(self):
        assert parse_duration(None, "d") is None

    @pytest.mark.parametrize("value", ["soon", "2 days", True, [1], float("nan"), float("inf")])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_duration(value, "d")


class TestClassifierAndSelectors:
    def test_unknown_rule(self):
        with pytest.raises(ConfigurationError):
            ClassifierConfig(rule_order=("og_type", "bogus"))

    def test_repeated_rule(self):
        with pytest.raises(ConfigurationError):
            ClassifierConfig(rule_order=("og_type", "og_type"))

    def test_classifier_from_dict(self):
        config = ClassifierConfig.from_dict(
            {"rule_order": "listing_url, og_type", "use_json_ld": False}
        )
        assert config.rule_order == ("listing_url", "og_type")
        assert config.use_json_ld is False

    def test_unknown_selector(self):
        with pytest.raises(ConfigurationError):
            ArticleSelectors.from_dict({"headline": "h1"})


class TestLoadSave:
    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_round_trip(self, tmp_path, suffix):
        config = CrawlConfig(
            base_url="https://example.com/news",
            max_depth=1,
            rate_limit_seconds=0.25,
            job_timeout_seconds=30.0,
        )
        path = tmp_path / f"crawl{suffix}"
        save_config(config, path)
        loaded = load_config(path)
        assert loaded.to_dict() == config.to_dict()

    def test_json_file_with_durations(self, tmp_path):
        path = tmp_path / "crawl.json"
        path.write_text(
            json.dumps({"base_url": "https://example.com", "rate_limit": "2s"}),
            encoding="utf-8",
        )
        assert load_config(path).rate_limit_seconds == 2.0

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "crawl.toml")
