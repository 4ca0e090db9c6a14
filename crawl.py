"""CLI entrypoint for single-domain news crawls."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from newscrawl import (
    ArticleProcessor,
    ConfigurationError,
    ContentProcessor,
    CrawlConfig,
    CrawlJob,
    CrawlSummary,
    InvalidURLError,
    OutputLayout,
    load_config,
)
from newscrawl.config import parse_duration


WAIT_POLL_SECONDS = 0.5


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl one news site and split pages into articles and generic content.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--base_url",
        type=str,
        default=None,
        help="Start URL; its host is the only host crawled. Overrides config.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawled_output"),
        help="Root output directory for records/manifests/logs.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument("--parallelism", type=int, default=None)
    parser.add_argument(
        "--rate_limit",
        type=str,
        default=None,
        help='Minimum delay between request starts, e.g. "2s" or "500ms".',
    )
    parser.add_argument(
        "--random_delay",
        type=str,
        default=None,
        help="Upper bound of random jitter added to the rate limit delay.",
    )
    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument(
        "--job_timeout",
        type=str,
        default=None,
        help='Stop the whole crawl after this long, e.g. "10m".',
    )
    parser.add_argument(
        "--include_subdomains",
        dest="include_subdomains",
        action="store_true",
        default=None,
        help="Also crawl subdomains of the base URL host.",
    )

    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload = load_config(args.config).to_dict()
    else:
        payload = {}

    if args.base_url is not None:
        payload["base_url"] = args.base_url
    if not payload.get("base_url"):
        raise ConfigurationError("No base URL provided. Use --config or --base_url.")

    if args.max_depth is not None:
        payload["max_depth"] = args.max_depth
    if args.parallelism is not None:
        payload["parallelism"] = args.parallelism
    if args.rate_limit is not None:
        payload["rate_limit_seconds"] = parse_duration(args.rate_limit, "rate_limit")
    if args.random_delay is not None:
        payload["random_delay_seconds"] = parse_duration(args.random_delay, "random_delay")
    if args.timeout_seconds is not None:
        payload["timeout_seconds"] = args.timeout_seconds
    if args.job_timeout is not None:
        payload["job_timeout_seconds"] = parse_duration(args.job_timeout, "job_timeout")
    if args.include_subdomains is not None:
        payload["include_subdomains"] = args.include_subdomains

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] [%(threadName)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Trafilatura warns on most noisy pages; keep crawl logs readable.
    logging.getLogger("trafilatura").setLevel(logging.ERROR)
    logging.getLogger("trafilatura.core").setLevel(logging.ERROR)
    logging.getLogger("readability").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_summary(
    summary: CrawlSummary,
    paths: dict[str, Any],
    *,
    print_stats_json: bool,
) -> None:
    stats = dict(summary.stats)

    print("\n=== Crawl Complete ===")
    print(f"base_url: {summary.base_url}")
    print(f"reason: {summary.reason}")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"articles: {paths.get('articles')}")
    print(f"content: {paths.get('content')}")
    print(f"stats: {paths.get('crawl_stats')}")

    print("\n--- Core Stats ---")
    print(f"pages_fetched: {summary.pages_fetched}")
    print(f"pages_processed: {summary.pages_processed}")
    print(f"errors: {summary.errors}")
    for key in ["fetch_errors", "ignored", "processor_errors", "links_found"]:
        if key in stats:
            print(f"{key}: {stats[key]}")
    print(f"duration_seconds: {summary.duration_seconds:.2f}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def run_job(job: CrawlJob) -> tuple[CrawlSummary, bool]:
    """Run `job` to completion; Ctrl-C cancels it instead of killing workers."""

    job.start()
    interrupted = False
    while True:
        try:
            return job.wait(timeout=WAIT_POLL_SECONDS), interrupted
        except TimeoutError:
            continue
        except KeyboardInterrupt:
            logging.error("Interrupted by user, cancelling crawl")
            interrupted = True
            job.cancel("interrupted")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except (ConfigurationError, InvalidURLError) as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    layout = OutputLayout(args.output_dir)
    layout.save_crawl_config(config)

    logging.info(
        "Starting crawl: base_url=%s, output_dir=%s, max_depth=%d, parallelism=%d",
        config.base_url,
        args.output_dir,
        config.max_depth,
        config.parallelism,
    )

    try:
        job = CrawlJob(
            config,
            logger=logging.getLogger("newscrawl.job"),
            article_processor=ArticleProcessor(layout.article_writer(), config.selectors),
            content_processor=ContentProcessor(layout.content_writer()),
        )
        summary, interrupted = run_job(job)
    except ConfigurationError as exc:
        logging.error("Invalid crawl setup: %s", exc)
        return 2
    except Exception:
        logging.exception("Crawl execution failed")
        return 1

    layout.save_crawl_stats(summary.to_json())
    print_summary(summary, layout.paths, print_stats_json=args.print_stats_json)
    return 130 if interrupted else 0


if __name__ == "__main__":
    raise SystemExit(main())
