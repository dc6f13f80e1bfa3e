# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for observable context cache.

Handlers are attached to the package logger only. The root logger and the
handlers installed by the test runner are left untouched.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from observable_context_cache.log_config import get_logs_dir

PACKAGE_LOGGER_NAME = "observable_context_cache"

# Level of the package logger before the first setup_logging() call
_previous_level: Optional[int] = None


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = False,
) -> Path:
    """Set up structured logging for the package logger.

    Args:
        log_dir: Directory for log files. If None, uses the default logs directory.
        log_level: Logging level (default: INFO)
        console_output: Whether to also output to stderr (default: False)

    Returns:
        Path of the JSON log file.
    """
    global _previous_level

    if log_dir is None:
        log_dir = get_logs_dir()

    log_dir.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    if _previous_level is None:
        _previous_level = package_logger.level
    package_logger.setLevel(log_level)

    # Drop handlers from a previous setup_logging() call
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    log_date = datetime.now(timezone.utc).strftime("%Y%m%d")
    log_file = log_dir / f"observable_context_cache_{log_date}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(StructuredFormatter())
    package_logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(console_formatter)
        package_logger.addHandler(console_handler)

    package_logger.info(f"Logging initialized. Log directory: {log_dir}")
    return log_file


def teardown_logging() -> None:
    """Close the handlers installed by setup_logging() and restore the level."""
    global _previous_level

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if _previous_level is not None:
        package_logger.setLevel(_previous_level)
        _previous_level = None
