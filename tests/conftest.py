# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures: a dictionary-backed ContextCache test double and
configuration builders."""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from observable_context_cache.cache import ContextCache
from observable_context_cache.models import HierarchyMode, MergedContextConfiguration


class FakeContextCache(ContextCache):
    """Records every call and answers lookups from a plain dict."""

    def __init__(self) -> None:
        self.contexts: Dict[MergedContextConfiguration, Any] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self.hits = 0
        self.misses = 0
        self.parent_count = 0

    def contains(self, key: MergedContextConfiguration) -> bool:
        self.calls.append(("contains", (key,)))
        return key in self.contexts

    def get(self, key: MergedContextConfiguration) -> Optional[Any]:
        self.calls.append(("get", (key,)))
        context = self.contexts.get(key)
        if context is None:
            self.misses += 1
        else:
            self.hits += 1
        return context

    def put(self, key: MergedContextConfiguration, context: Any) -> None:
        self.calls.append(("put", (key, context)))
        self.contexts[key] = context

    def remove(self, key: MergedContextConfiguration, hierarchy_mode: HierarchyMode) -> None:
        self.calls.append(("remove", (key, hierarchy_mode)))
        self.contexts.pop(key, None)

    def size(self) -> int:
        self.calls.append(("size", ()))
        return len(self.contexts)

    def get_parent_context_count(self) -> int:
        self.calls.append(("get_parent_context_count", ()))
        return self.parent_count

    def get_hit_count(self) -> int:
        self.calls.append(("get_hit_count", ()))
        return self.hits

    def get_miss_count(self) -> int:
        self.calls.append(("get_miss_count", ()))
        return self.misses

    def reset(self) -> None:
        self.calls.append(("reset", ()))
        self.contexts.clear()
        self.hits = self.misses = 0

    def clear(self) -> None:
        self.calls.append(("clear", ()))
        self.contexts.clear()

    def clear_statistics(self) -> None:
        self.calls.append(("clear_statistics", ()))
        self.hits = self.misses = 0

    def log_statistics(self) -> None:
        self.calls.append(("log_statistics", ()))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_cache() -> FakeContextCache:
    return FakeContextCache()


@pytest.fixture
def make_config():
    """Build a MergedContextConfiguration for a named test class."""

    def _make(
        test_class: str = "tests.playground.AlphaTest",
        classes: Tuple[Any, ...] = ("app.AppConfig",),
        profiles: Tuple[str, ...] = (),
        properties: Tuple[str, ...] = (),
    ) -> MergedContextConfiguration:
        return MergedContextConfiguration(
            test_class=test_class,
            classes=classes,
            active_profiles=profiles,
            properties=properties,
        )

    return _make
