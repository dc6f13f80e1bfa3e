# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Session metrics export for context cache misses.

Writes one JSON line per test session with every recorded miss, so miss
patterns can be compared across runs by external tooling.

Log Location: ./.observable_context_cache/session_metrics/session_metrics.jsonl
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from observable_context_cache.log_config import (
    get_session_metrics_dir,
    validate_filename_component,
)
from observable_context_cache.models import CacheMissEntry, CacheMissInfo, CacheMissInfoKey

logger = logging.getLogger(__name__)

DEFAULT_METRICS_LOG_FILE = "session_metrics.jsonl"


@dataclass
class SessionMetrics:
    """Cache misses recorded during one test session."""

    session_id: str = ""
    start_time: str = ""
    end_time: str = ""
    total_misses: int = 0
    # Fully qualified test class name -> recorded misses
    classes: Dict[str, List[CacheMissEntry]] = field(default_factory=dict)
    configuration: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_misses": self.total_misses,
            "classes": {
                test_class: [entry.to_dict() for entry in entries]
                for test_class, entries in self.classes.items()
            },
            "configuration": self.configuration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionMetrics":
        """Build from a decoded JSON line.

        Raises:
            KeyError: If an entry lacks its timestamp.
            ValueError: If a timestamp is not ISO formatted.
        """
        return cls(
            session_id=data.get("session_id", ""),
            start_time=data.get("start_time", ""),
            end_time=data.get("end_time", ""),
            total_misses=data.get("total_misses", 0),
            classes={
                test_class: [CacheMissEntry.from_dict(entry) for entry in entries]
                for test_class, entries in data.get("classes", {}).items()
            },
            configuration=data.get("configuration", {}),
        )


class MetricsCollector:
    """Writes registry snapshots as session metrics.

    Usage:
        collector = MetricsCollector()
        collector.set_configuration(config.to_dict())
        # ... test session runs ...
        collector.finalize_and_write(registry.snapshot())
    """

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        log_file: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Initialize the metrics collector.

        Args:
            log_dir: Directory for the metrics file. If None, uses the default
                    session metrics directory.
            log_file: Log filename. If None, uses session_metrics.jsonl.
                     Must be a simple filename without path separators.
            session_id: Optional session ID. If None, generates a UUID.

        Raises:
            ValueError: If log_file is empty or contains path separators.
        """
        self._log_dir = Path(log_dir) if log_dir is not None else get_session_metrics_dir()

        log_file = log_file or DEFAULT_METRICS_LOG_FILE
        validate_filename_component(log_file, "log_file")
        self._log_file = log_file

        self._session_id = session_id or str(uuid.uuid4())
        self._start_time = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        self._configuration: Dict[str, Any] = {}

        logger.debug(f"MetricsCollector initialized with session_id={self._session_id}")

    def get_log_path(self) -> Path:
        return self._log_dir / self._log_file

    def get_session_id(self) -> str:
        return self._session_id

    def set_configuration(self, config: Dict[str, Any]) -> None:
        """Set configuration values to capture alongside the misses."""
        self._configuration = config.copy()

    def build_session_metrics(
        self, snapshot: Mapping[CacheMissInfoKey, CacheMissInfo]
    ) -> SessionMetrics:
        """Build session metrics from a registry snapshot.

        Args:
            snapshot: Registry snapshot.

        Returns:
            SessionMetrics for this session.
        """
        classes = {key.test_class: list(info.entries) for key, info in snapshot.items()}
        return SessionMetrics(
            session_id=self._session_id,
            start_time=self._start_time,
            end_time=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            total_misses=sum(len(entries) for entries in classes.values()),
            classes=classes,
            configuration=self._configuration,
        )

    def write_metrics(self, metrics: SessionMetrics) -> None:
        """Append session metrics to the JSONL file."""
        self._log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.get_log_path()

        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(metrics.to_dict(), separators=(",", ":")) + "\n")

        logger.info(f"Session metrics written to {log_path}")

    def finalize_and_write(
        self, snapshot: Mapping[CacheMissInfoKey, CacheMissInfo]
    ) -> SessionMetrics:
        """Build and write metrics in one call.

        Returns:
            The SessionMetrics that were written.
        """
        metrics = self.build_session_metrics(snapshot)
        self.write_metrics(metrics)
        return metrics


def read_session_metrics(log_path: Path, limit: Optional[int] = None) -> List[SessionMetrics]:
    """Read session metrics from a JSONL log file.

    Args:
        log_path: Path to the session metrics file.
        limit: Optional maximum number of sessions to read.

    Returns:
        List of SessionMetrics objects. Empty if the file does not exist.
    """
    if not log_path.exists():
        return []

    metrics_list: List[SessionMetrics] = []

    with open(log_path, encoding="utf-8") as f:
        for line in f:
            if limit is not None and len(metrics_list) >= limit:
                break

            line = line.strip()
            if not line:
                continue

            try:
                metrics_list.append(SessionMetrics.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed metrics entry: {e}")
                continue

    return metrics_list
