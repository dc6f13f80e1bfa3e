# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Context cache abstraction and the observable decorator.

This module provides:
- ContextCache: Abstract interface of a test framework's context cache
- ObservableContextCache: Decorator notifying listeners on cache misses

The decorator owns no caching logic. Storage, eviction and hit/miss
accounting stay with the wrapped cache; the decorator only adds a
side-channel notification when a lookup finds nothing.

Thread Safety:
- Listener registration is copy-on-write under _listeners_lock
- get() iterates over the listener tuple captured at call time, so a
  listener registered during an in-flight get() may miss that one event
"""

import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Optional, Tuple

from observable_context_cache.listeners import ContextCacheMissesListener
from observable_context_cache.models import HierarchyMode, MergedContextConfiguration

logger = logging.getLogger(__name__)


class ContextCache(ABC):
    """Abstract interface for an application context cache.

    Any conforming implementation (the host framework's cache or a test
    double) can be wrapped by ObservableContextCache. ``get`` returns None
    when no context is stored for the key.
    """

    @abstractmethod
    def contains(self, key: MergedContextConfiguration) -> bool:
        """Whether a context is stored for ``key``."""

    @abstractmethod
    def get(self, key: MergedContextConfiguration) -> Optional[Any]:
        """Return the context stored for ``key``, or None on a miss."""

    @abstractmethod
    def put(self, key: MergedContextConfiguration, context: Any) -> None:
        """Store ``context`` under ``key``."""

    @abstractmethod
    def remove(self, key: MergedContextConfiguration, hierarchy_mode: HierarchyMode) -> None:
        """Remove the context for ``key`` according to ``hierarchy_mode``."""

    @abstractmethod
    def size(self) -> int:
        """Number of contexts currently stored."""

    @abstractmethod
    def get_parent_context_count(self) -> int:
        """Number of stored contexts acting as parents in a hierarchy."""

    @abstractmethod
    def get_hit_count(self) -> int:
        """Number of lookups that found a context."""

    @abstractmethod
    def get_miss_count(self) -> int:
        """Number of lookups that found nothing."""

    @abstractmethod
    def reset(self) -> None:
        """Clear all contexts and statistics."""

    @abstractmethod
    def clear(self) -> None:
        """Clear all contexts."""

    @abstractmethod
    def clear_statistics(self) -> None:
        """Reset hit and miss counters."""

    @abstractmethod
    def log_statistics(self) -> None:
        """Emit cache statistics to the log."""


class ObservableContextCache(ContextCache):
    """ContextCache decorator exposing cache misses to listeners.

    Intended for test instrumentation: track context reloads that point at
    poor context reuse between test classes.

    Usage:
        cache = ObservableContextCache(host_cache)
        cache.register_listener(DefaultContextCacheMissesListener(registry))
        context = cache.get(config)  # listeners notified if None
    """

    def __init__(self, delegate: ContextCache) -> None:
        """Wrap ``delegate``.

        Args:
            delegate: The underlying cache to decorate and observe.

        Raises:
            TypeError: If delegate is None.
        """
        if delegate is None:
            raise TypeError("ObservableContextCache requires a delegate cache")

        self._delegate = delegate
        self._listeners: Tuple[ContextCacheMissesListener, ...] = ()
        self._listeners_lock = Lock()

        logger.debug(f"[OCC] New ObservableContextCache created over {type(delegate).__name__}")

    @property
    def delegate(self) -> ContextCache:
        return self._delegate

    @property
    def listeners(self) -> Tuple[ContextCacheMissesListener, ...]:
        """Registered listeners in registration order."""
        return self._listeners

    def register_listener(self, listener: ContextCacheMissesListener) -> None:
        """Register a listener notified on every cache miss.

        Registering the same listener instance twice has no effect.

        Args:
            listener: Listener to register.

        Raises:
            TypeError: If listener is None.
        """
        if listener is None:
            raise TypeError("listener must not be None")

        with self._listeners_lock:
            if any(existing is listener for existing in self._listeners):
                return
            self._listeners = self._listeners + (listener,)

        logger.debug(f"[OCC] Registered cache miss listener {type(listener).__name__}")

    def contains(self, key: MergedContextConfiguration) -> bool:
        return self._delegate.contains(key)

    def get(self, key: MergedContextConfiguration) -> Optional[Any]:
        """Look up ``key`` in the delegate, notifying listeners on a miss.

        Listener errors are logged and do not affect the returned value or
        the remaining listeners.
        """
        context = self._delegate.get(key)
        if context is None:
            for listener in self._listeners:
                try:
                    listener.on_cache_miss(key)
                except Exception as e:
                    logger.warning(
                        f"[OCC] Cache miss listener {type(listener).__name__} failed: {e}",
                        exc_info=True,
                    )
        return context

    def put(self, key: MergedContextConfiguration, context: Any) -> None:
        self._delegate.put(key, context)

    def remove(self, key: MergedContextConfiguration, hierarchy_mode: HierarchyMode) -> None:
        self._delegate.remove(key, hierarchy_mode)

    def size(self) -> int:
        return self._delegate.size()

    def get_parent_context_count(self) -> int:
        return self._delegate.get_parent_context_count()

    def get_hit_count(self) -> int:
        return self._delegate.get_hit_count()

    def get_miss_count(self) -> int:
        return self._delegate.get_miss_count()

    def reset(self) -> None:
        self._delegate.reset()

    def clear(self) -> None:
        self._delegate.clear()

    def clear_statistics(self) -> None:
        self._delegate.clear_statistics()

    def log_statistics(self) -> None:
        self._delegate.log_statistics()
