# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Listeners notified when a context is not found in the context cache.

Listeners must be registered on the ObservableContextCache before the first
context lookup of the session. Listeners registered later (for example from
inside a test) only observe misses of lookups that start after registration.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from observable_context_cache.models import MergedContextConfiguration

if TYPE_CHECKING:
    from observable_context_cache.metrics_registry import ContextCacheMetricsRegistry

logger = logging.getLogger(__name__)


class ContextCacheMissesListener(ABC):
    """Callback interface for context cache misses."""

    @abstractmethod
    def on_cache_miss(self, key: MergedContextConfiguration) -> None:
        """Called with the configuration whose context was not cached.

        Args:
            key: Configuration that produced the miss.
        """
        pass


class DefaultContextCacheMissesListener(ContextCacheMissesListener):
    """Records every cache miss in a metrics registry."""

    def __init__(self, registry: "ContextCacheMetricsRegistry") -> None:
        """Initialize listener.

        Args:
            registry: Registry receiving one entry per miss.
        """
        self._registry = registry

    @property
    def registry(self) -> "ContextCacheMetricsRegistry":
        return self._registry

    def on_cache_miss(self, key: MergedContextConfiguration) -> None:
        self._registry.record_entry(key)
