# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared log location configuration for observable context cache.

- Data root directory (default: ./.observable_context_cache/)
- Filename validation for metrics files
- Subdirectory structure: logs/, session_metrics/
"""

from pathlib import Path
from typing import Optional

DEFAULT_DATA_ROOT_NAME = ".observable_context_cache"

LOGS_SUBDIR = "logs"
SESSION_METRICS_SUBDIR = "session_metrics"


def get_default_data_root() -> Path:
    """Get the default data root directory.

    Resolved against the working directory at call time, so each test run
    writes next to the project it runs in.

    Returns:
        Path to ./.observable_context_cache/
    """
    return Path.cwd() / DEFAULT_DATA_ROOT_NAME


def validate_filename_component(value: str, name: str = "value") -> None:
    """Validate a string for safe use in filenames.

    Args:
        value: The string to validate.
        name: Name of the parameter for error messages.

    Raises:
        ValueError: If value is empty or contains path separators, parent
                   references, or null bytes.
    """
    if not value:
        raise ValueError(f"{name} must not be empty")
    if "\0" in value:
        raise ValueError(f"{name} contains null bytes: {value}")
    if "/" in value or "\\" in value or ":" in value:
        raise ValueError(f"{name} must not contain path separators: {value}")
    if ".." in value:
        raise ValueError(f"{name} must not contain parent references: {value}")



def get_logs_dir(data_root: Optional[Path] = None) -> Path:
    """Get the structured log directory: {data_root}/logs/"""
    root = data_root or get_default_data_root()
    return root / LOGS_SUBDIR


def get_session_metrics_dir(data_root: Optional[Path] = None) -> Path:
    """Get the session metrics directory: {data_root}/session_metrics/"""
    root = data_root or get_default_data_root()
    return root / SESSION_METRICS_SUBDIR
