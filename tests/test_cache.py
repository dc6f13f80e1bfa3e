# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Unit tests for ObservableContextCache.

Tests coverage:
- Pass-through of every cache operation to the delegate
- Listener notification on misses only
- Listener registration order and de-duplication
- Listener failure isolation
- Registration concurrent with lookups
"""

import logging
from threading import Barrier, Thread
from typing import List
from unittest.mock import MagicMock

import pytest

from observable_context_cache.cache import ContextCache, ObservableContextCache
from observable_context_cache.listeners import ContextCacheMissesListener
from observable_context_cache.models import HierarchyMode, MergedContextConfiguration


class RecordingListener(ContextCacheMissesListener):
    def __init__(self, name: str, journal: List[tuple]) -> None:
        self.name = name
        self.journal = journal

    def on_cache_miss(self, key: MergedContextConfiguration) -> None:
        self.journal.append((self.name, key))


class FailingListener(ContextCacheMissesListener):
    def on_cache_miss(self, key: MergedContextConfiguration) -> None:
        raise RuntimeError("listener exploded")


class TestPassThrough:
    """Every operation delegates unchanged and returns the delegate's result."""

    def test_requires_delegate(self) -> None:
        with pytest.raises(TypeError):
            ObservableContextCache(None)  # type: ignore[arg-type]

    def test_is_a_context_cache(self, fake_cache) -> None:
        assert isinstance(ObservableContextCache(fake_cache), ContextCache)

    def test_put_contains_get(self, fake_cache, make_config) -> None:
        cache = ObservableContextCache(fake_cache)
        config = make_config()
        context = object()

        cache.put(config, context)

        assert cache.contains(config) is True
        assert cache.get(config) is context
        assert fake_cache.call_names() == ["put", "contains", "get"]

    def test_remove_passes_hierarchy_mode(self, fake_cache, make_config) -> None:
        cache = ObservableContextCache(fake_cache)
        config = make_config()
        cache.put(config, object())

        cache.remove(config, HierarchyMode.CURRENT_LEVEL)

        assert fake_cache.calls[-1] == ("remove", (config, HierarchyMode.CURRENT_LEVEL))
        assert cache.size() == 0

    def test_statistics_delegated(self) -> None:
        delegate = MagicMock(spec=ContextCache)
        delegate.size.return_value = 4
        delegate.get_parent_context_count.return_value = 1
        delegate.get_hit_count.return_value = 7
        delegate.get_miss_count.return_value = 3
        cache = ObservableContextCache(delegate)

        assert cache.size() == 4
        assert cache.get_parent_context_count() == 1
        assert cache.get_hit_count() == 7
        assert cache.get_miss_count() == 3

    def test_maintenance_operations_delegated(self) -> None:
        delegate = MagicMock(spec=ContextCache)
        cache = ObservableContextCache(delegate)

        cache.reset()
        cache.clear()
        cache.clear_statistics()
        cache.log_statistics()

        delegate.reset.assert_called_once_with()
        delegate.clear.assert_called_once_with()
        delegate.clear_statistics.assert_called_once_with()
        delegate.log_statistics.assert_called_once_with()

    def test_hit_and_miss_counts_belong_to_delegate(self, fake_cache, make_config) -> None:
        cache = ObservableContextCache(fake_cache)
        config = make_config()

        cache.get(config)
        cache.put(config, object())
        cache.get(config)

        assert cache.get_miss_count() == 1
        assert cache.get_hit_count() == 1


class TestMissNotification:
    def test_hit_does_not_notify(self, fake_cache, make_config) -> None:
        journal: List[tuple] = []
        cache = ObservableContextCache(fake_cache)
        cache.register_listener(RecordingListener("a", journal))
        config = make_config()
        cache.put(config, object())

        cache.get(config)

        assert journal == []

    def test_miss_notifies_every_listener_once_in_order(self, fake_cache, make_config) -> None:
        journal: List[tuple] = []
        cache = ObservableContextCache(fake_cache)
        cache.register_listener(RecordingListener("first", journal))
        cache.register_listener(RecordingListener("second", journal))
        config = make_config()

        result = cache.get(config)

        assert result is None
        assert journal == [("first", config), ("second", config)]

    def test_listeners_notified_before_returning(self, make_config) -> None:
        delegate = MagicMock(spec=ContextCache)
        delegate.get.return_value = None
        listener = MagicMock(spec=ContextCacheMissesListener)
        cache = ObservableContextCache(delegate)
        cache.register_listener(listener)
        config = make_config()

        cache.get(config)

        delegate.get.assert_called_once_with(config)
        listener.on_cache_miss.assert_called_once_with(config)

    def test_same_listener_registered_once(self, fake_cache, make_config) -> None:
        journal: List[tuple] = []
        listener = RecordingListener("a", journal)
        cache = ObservableContextCache(fake_cache)

        cache.register_listener(listener)
        cache.register_listener(listener)
        cache.get(make_config())

        assert cache.listeners == (listener,)
        assert len(journal) == 1

    def test_none_listener_rejected(self, fake_cache) -> None:
        with pytest.raises(TypeError):
            ObservableContextCache(fake_cache).register_listener(None)  # type: ignore[arg-type]

    def test_failing_listener_isolated(self, fake_cache, make_config, caplog) -> None:
        journal: List[tuple] = []
        cache = ObservableContextCache(fake_cache)
        cache.register_listener(FailingListener())
        cache.register_listener(RecordingListener("after", journal))
        config = make_config()

        with caplog.at_level(logging.WARNING, logger="observable_context_cache.cache"):
            result = cache.get(config)

        assert result is None
        assert journal == [("after", config)]
        assert "FailingListener failed" in caplog.text


class TestConcurrentRegistration:
    def test_lookups_after_registration_are_observed(self, fake_cache, make_config) -> None:
        """Listeners registered while lookups run see every later miss."""
        journal: List[tuple] = []
        cache = ObservableContextCache(fake_cache)
        config = make_config()
        barrier = Barrier(5)

        def lookups() -> None:
            barrier.wait()
            for _ in range(200):
                cache.get(config)

        threads = [Thread(target=lookups) for _ in range(4)]
        for thread in threads:
            thread.start()
        barrier.wait()
        listener = RecordingListener("late", journal)
        cache.register_listener(listener)
        for thread in threads:
            thread.join()

        def late_lookups() -> None:
            for _ in range(200):
                cache.get(config)

        # Every lookup below starts after register_listener() returned
        observed = len(journal)
        late_threads = [Thread(target=late_lookups) for _ in range(4)]
        for thread in late_threads:
            thread.start()
        for thread in late_threads:
            thread.join()

        assert cache.listeners == (listener,)
        assert len(journal) - observed == 4 * 200
