"""Filesystem-backed sinks for extracted records and crawl manifests.

`JSONLWriter` owns the on-disk layout. Processors hand it records; the CLI
uses it for the config and stats manifests.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol

from .config import CrawlConfig
from .constants import JSON_INDENT
from .types import JSONDict


class SerializableRecord(Protocol):
    def to_json(self) -> JSONDict: ...


class RecordWriter(Protocol):
    """Anything that accepts extracted records, e.g. `JSONLWriter`."""

    def write(self, record: SerializableRecord) -> None: ...


class JSONLWriter:
    """Append records as JSON lines to a single file.

    Writes are serialized by a lock, so one writer can be shared by all worker
    threads.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._count = 0

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def write(self, record: SerializableRecord | Mapping[str, Any]) -> None:
        payload = record if isinstance(record, Mapping) else record.to_json()
        line = json.dumps(dict(payload), ensure_ascii=False, sort_keys=True)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
            self._count += 1

    def read_all(self) -> list[dict[str, Any]]:
        """Read back every row, skipping blank or corrupt lines."""

        if not self.path.exists():
            return []
        rows: list[dict[str, Any]] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(payload, dict):
                    rows.append(payload)
        return rows


class OutputLayout:
    """Paths for one crawl run under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self.manifests_dir = self.output_dir / "manifests"
        self.logs_dir = self.output_dir / "logs"

        self.articles_path = self.output_dir / "articles.jsonl"
        self.content_path = self.output_dir / "content.jsonl"
        self.crawl_config_path = self.manifests_dir / "crawl_config.json"
        self.crawl_stats_path = self.manifests_dir / "crawl_stats.json"

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.manifests_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "articles": str(self.articles_path),
            "content": str(self.content_path),
            "crawl_config": str(self.crawl_config_path),
            "crawl_stats": str(self.crawl_stats_path),
            "log_dir": str(self.logs_dir),
        }

    def article_writer(self) -> JSONLWriter:
        return JSONLWriter(self.articles_path)

    def content_writer(self) -> JSONLWriter:
        return JSONLWriter(self.content_path)

    def save_crawl_config(self, config: CrawlConfig | Mapping[str, Any]) -> None:
        """Write crawl config manifest atomically as JSON."""

        payload = config.to_dict() if isinstance(config, CrawlConfig) else config
        atomic_write_json(self.crawl_config_path, dict(payload))

    def save_crawl_stats(self, stats: Mapping[str, Any]) -> None:
        """Write crawl stats manifest atomically as JSON."""

        atomic_write_json(self.crawl_stats_path, dict(stats))


def atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    content = json.dumps(payload, ensure_ascii=False, indent=JSON_INDENT, sort_keys=True) + "\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


__all__ = [
    "JSONLWriter",
    "OutputLayout",
    "RecordWriter",
    "atomic_write_json",
]
