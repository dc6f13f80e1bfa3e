# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for observable context cache."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".observable_context_cache.yml"


class ConfigurationError(Exception):
    """Raised when configuration cannot be used to build the instrumentation."""

    pass


class Config:
    """Configuration for the context cache instrumentation.

    Loads configuration from .observable_context_cache.yml with validation and defaults.
    """

    DEFAULTS = {
        "enabled": True,
        "top_classes_limit": 5,
        "top_profiles_limit": 3,
        # "package.module:callable" returning the host ContextCache
        "cache_factory": "",
        # "package.module:callable" building a context from a MergedContextConfiguration
        "context_factory": "",
        "write_session_metrics": False,
        "metrics_log_dir": "",
        "structured_log_dir": "",
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.debug(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self.DEFAULTS.copy()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self.DEFAULTS.copy()
                return

            self._config = self.DEFAULTS.copy()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
        except OSError as e:
            logger.warning(
                f"Unable to read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]!r}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int, reject it for numeric settings
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key in ("top_classes_limit", "top_profiles_limit"):
            return value > 0
        elif key in ("cache_factory", "context_factory"):
            # Empty means "not configured"
            return value == "" or ":" in value

        return True

    def override(self, key: str, value: Any) -> None:
        """Override a value from another source (e.g. a pytest ini option).

        Invalid values are ignored with a warning, like values from the file.
        """
        self._validate_and_merge({key: value})

    def to_dict(self) -> Dict[str, Any]:
        """Effective configuration values, for capture in session metrics."""
        return self._config.copy()

    @property
    def enabled(self) -> bool:
        """Whether cache miss instrumentation is enabled."""
        value = self._config["enabled"]
        assert isinstance(value, bool)
        return value

    @property
    def top_classes_limit(self) -> int:
        """Number of test classes listed in the miss report."""
        value = self._config["top_classes_limit"]
        assert isinstance(value, int)
        return value

    @property
    def top_profiles_limit(self) -> int:
        """Number of active profiles listed in the miss report."""
        value = self._config["top_profiles_limit"]
        assert isinstance(value, int)
        return value

    @property
    def cache_factory(self) -> str:
        """Import path of the factory building the host context cache."""
        value = self._config["cache_factory"]
        assert isinstance(value, str)
        return value

    @property
    def context_factory(self) -> str:
        """Import path of the factory building an application context."""
        value = self._config["context_factory"]
        assert isinstance(value, str)
        return value

    @property
    def write_session_metrics(self) -> bool:
        """Whether to append the session's misses to a JSONL metrics file."""
        value = self._config["write_session_metrics"]
        assert isinstance(value, bool)
        return value

    @property
    def metrics_log_dir(self) -> Optional[Path]:
        """Directory for session metrics. None means the default location."""
        value = self._config["metrics_log_dir"]
        assert isinstance(value, str)
        return Path(value) if value else None

    @property
    def structured_log_dir(self) -> Optional[Path]:
        """Directory for JSON structured logs. None disables file logging."""
        value = self._config["structured_log_dir"]
        assert isinstance(value, str)
        return Path(value) if value else None
