# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Registry aggregating context cache misses per test class.

The registry is the only owner of miss aggregates. Writers go through
record_entry(), readers through snapshot(), which hands out a read-only copy.

Thread Safety:
- Single _lock protects _metrics
- record_entry() performs the create-or-append as one step under the lock,
  so concurrent misses for the same test class are never lost
- Aggregates are immutable, so a snapshot shares them without copying
"""

import logging
from threading import Lock
from types import MappingProxyType
from typing import Dict, Mapping

from observable_context_cache.models import (
    CacheMissEntry,
    CacheMissInfo,
    CacheMissInfoKey,
    MergedContextConfiguration,
)

logger = logging.getLogger(__name__)


class ContextCacheMetricsRegistry:
    """Concurrent map from test class key to its cache miss history.

    Usage:
        registry = ContextCacheMetricsRegistry()
        registry.record_entry(config)
        for key, info in registry.snapshot().items():
            print(key.simple_name, info.miss_count)
    """

    def __init__(self) -> None:
        # Insertion order is first-miss order per test class
        self._metrics: Dict[CacheMissInfoKey, CacheMissInfo] = {}
        self._lock = Lock()

    def record_entry(self, config: MergedContextConfiguration) -> None:
        """Record one cache miss for the configuration's test class.

        Args:
            config: Configuration whose lookup missed.

        Raises:
            ValueError: If config is None or has no test class. Nothing is recorded.
        """
        if config is None:
            raise ValueError("Cannot record a cache miss without a configuration")

        key = CacheMissInfoKey.from_config(config)
        entry = CacheMissEntry.from_config(config)

        with self._lock:
            info = self._metrics.get(key)
            if info is None:
                self._metrics[key] = CacheMissInfo.with_first(entry)
            else:
                self._metrics[key] = info.with_new(entry)

        logger.debug(f"[OCC] Cache miss recorded for {key}")

    def snapshot(self) -> Mapping[CacheMissInfoKey, CacheMissInfo]:
        """Return a read-only copy of all recorded misses.

        Returns:
            Mapping in first-miss order. Empty if nothing was recorded.
        """
        with self._lock:
            return MappingProxyType(dict(self._metrics))

    def total_misses(self) -> int:
        """Total number of misses recorded across all test classes."""
        with self._lock:
            return sum(info.miss_count for info in self._metrics.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
