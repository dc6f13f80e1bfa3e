# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import yaml

from observable_context_cache.config import Config


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nonexistent.yml"
        config = Config(config_path=config_path)

        assert config.enabled is True
        assert config.top_classes_limit == 5
        assert config.top_profiles_limit == 3
        assert config.cache_factory == ""
        assert config.context_factory == ""
        assert config.write_session_metrics is False
        assert config.metrics_log_dir is None
        assert config.structured_log_dir is None


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "top_classes_limit": 10,
            "top_profiles_limit": 1,
            "cache_factory": "myapp.testing:build_cache",
            "write_session_metrics": True,
            "metrics_log_dir": tmpdir,
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.top_classes_limit == 10
        assert config.top_profiles_limit == 1
        assert config.cache_factory == "myapp.testing:build_cache"
        assert config.write_session_metrics is True
        assert config.metrics_log_dir == Path(tmpdir)
        # Defaults for unspecified values
        assert config.enabled is True
        assert config.context_factory == ""


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "top_classes_limit": 0,  # Invalid: must be > 0
            "top_profiles_limit": -2,  # Invalid: must be > 0
            "cache_factory": "myapp.testing.build_cache",  # Invalid: missing ':'
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.top_classes_limit == 5
        assert config.top_profiles_limit == 3
        assert config.cache_factory == ""


def test_invalid_parameter_types():
    """Test that invalid parameter types are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "enabled": "yes",  # Should be bool
            "top_classes_limit": "five",  # Should be int
            "top_profiles_limit": True,  # bool is not accepted as int
            "metrics_log_dir": 42,  # Should be str
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.enabled is True
        assert config.top_classes_limit == 5
        assert config.top_profiles_limit == 3
        assert config.metrics_log_dir is None


def test_unknown_parameters_ignored(caplog):
    """Test that unknown parameters are logged and ignored."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {"top_classes_limit": 7, "unknown_param": "value"}

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.top_classes_limit == 7
        assert "unknown_param" not in config.to_dict()
        assert "Unknown configuration parameter 'unknown_param'" in caplog.text


def test_empty_config_file():
    """Test that an empty config file falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("")

        config = Config(config_path=config_path)

        assert config.to_dict() == Config.DEFAULTS


def test_non_dict_config_file():
    """Test that a YAML list instead of a mapping falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("- enabled\n- top_classes_limit\n")

        config = Config(config_path=config_path)

        assert config.to_dict() == Config.DEFAULTS


def test_malformed_yaml(caplog):
    """Test that malformed YAML falls back to defaults with a warning."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("enabled: [unclosed\n")

        config = Config(config_path=config_path)

        assert config.enabled is True
        assert "Error parsing configuration file" in caplog.text


def test_override_applies_validation():
    """Test that overrides from other sources go through the same validation."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "missing.yml")

        config.override("context_factory", "myapp.testing:build_context")
        config.override("top_classes_limit", 0)

        assert config.context_factory == "myapp.testing:build_context"
        assert config.top_classes_limit == 5


def test_to_dict_is_a_copy():
    """Test that mutating the exported dict does not change the config."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "missing.yml")

        exported = config.to_dict()
        exported["enabled"] = False

        assert config.enabled is True
