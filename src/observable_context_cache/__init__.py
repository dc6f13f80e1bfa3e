# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Observable context cache: per-test-class context cache miss reporting."""

from .analyzer import CacheMissReport, GlobalTestExecutionAnalyzer
from .bootstrap import CacheAwareContextLoader, ContextConfigurationResolver, load_factory
from .cache import ContextCache, ObservableContextCache
from .config import Config, ConfigurationError
from .listeners import ContextCacheMissesListener, DefaultContextCacheMissesListener
from .metrics_collector import MetricsCollector, SessionMetrics, read_session_metrics
from .metrics_registry import ContextCacheMetricsRegistry
from .models import (
    CacheMissEntry,
    CacheMissInfo,
    CacheMissInfoKey,
    HierarchyMode,
    MergedContextConfiguration,
)

__version__ = "0.1.0"

__all__ = [
    "CacheAwareContextLoader",
    "CacheMissEntry",
    "CacheMissInfo",
    "CacheMissInfoKey",
    "CacheMissReport",
    "Config",
    "ConfigurationError",
    "ContextCache",
    "ContextCacheMetricsRegistry",
    "ContextCacheMissesListener",
    "ContextConfigurationResolver",
    "DefaultContextCacheMissesListener",
    "GlobalTestExecutionAnalyzer",
    "HierarchyMode",
    "MergedContextConfiguration",
    "MetricsCollector",
    "ObservableContextCache",
    "SessionMetrics",
    "load_factory",
    "read_session_metrics",
]
