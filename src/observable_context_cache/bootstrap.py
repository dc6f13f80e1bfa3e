# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Context bootstrap: configuration resolution and cache-aware loading.

This module connects test classes to the context cache:
- ContextConfigurationResolver: Builds the MergedContextConfiguration of a
  test class from its markers and class attributes
- CacheAwareContextLoader: Returns the cached context for a configuration,
  loading and caching it on a miss
- load_factory: Imports "package.module:callable" factory paths

Marker conventions (see plugin.py for registration):
    @pytest.mark.cache_aware_context(classes=[AppConfig], properties=["a=1"])
    @pytest.mark.imports(classes=[ExtraConfig])
    @pytest.mark.active_profiles("test", "integration")

Class attribute fallbacks when markers are absent:
    context_configuration = [AppConfig]
    context_properties = ["a=1"]
"""

import importlib
import logging
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from observable_context_cache.cache import ContextCache
from observable_context_cache.config import ConfigurationError
from observable_context_cache.models import (
    ConfigurationClass,
    HierarchyMode,
    MergedContextConfiguration,
)

logger = logging.getLogger(__name__)

CACHE_AWARE_CONTEXT_MARKER = "cache_aware_context"
IMPORTS_MARKER = "imports"
ACTIVE_PROFILES_MARKER = "active_profiles"
DIRTIES_CONTEXT_MARKER = "dirties_context"

ContextFactory = Callable[[MergedContextConfiguration], Any]


def load_factory(path: str) -> Callable[..., Any]:
    """Import a factory from a "package.module:attribute" path.

    Args:
        path: Import path, module and attribute separated by a colon.

    Returns:
        The imported callable.

    Raises:
        ConfigurationError: If the path is malformed, the import fails, or the
            attribute is not callable.
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigurationError(
            f"Factory path must look like 'package.module:callable', got {path!r}"
        )

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import factory module {module_name!r}: {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigurationError(f"Factory {path!r} not found: {e}") from e

    if not callable(target):
        raise ConfigurationError(f"Factory {path!r} is not callable")

    return target


def _as_sequence(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class ContextConfigurationResolver:
    """Resolves the MergedContextConfiguration of a test class.

    Markers are matched by name; the first mark of each name wins, so pass
    them closest-first (as pytest's ``iter_markers`` yields them).
    """

    def resolve(
        self,
        test_class: Optional[ConfigurationClass],
        markers: Iterable[Any] = (),
        parent: Optional[MergedContextConfiguration] = None,
    ) -> MergedContextConfiguration:
        """Build the configuration for ``test_class``.

        Args:
            test_class: Test class (or its dotted name) requesting a context.
            markers: pytest marks (objects with name, args and kwargs).
            parent: Optional parent configuration in a context hierarchy.

        Returns:
            The merged configuration.

        Raises:
            ConfigurationError: If test_class is None.
        """
        if test_class is None:
            raise ConfigurationError(
                "Cannot resolve a context configuration without a test class"
            )

        marks: Dict[str, Any] = {}
        for mark in markers:
            marks.setdefault(mark.name, mark)

        return MergedContextConfiguration(
            test_class=test_class,
            classes=tuple(self.get_classes(test_class, marks)),
            active_profiles=tuple(self.get_active_profiles(marks)),
            properties=tuple(self.get_properties(test_class, marks)),
            parent=parent,
        )

    def get_classes(
        self, test_class: ConfigurationClass, marks: Dict[str, Any]
    ) -> List[ConfigurationClass]:
        """Configuration classes in resolution order.

        Explicit ``cache_aware_context(classes=...)`` classes come first,
        then ``imports`` classes. The class attribute ``context_configuration``
        is only consulted when no explicit classes were declared.
        """
        classes: List[ConfigurationClass] = []

        wrapping = marks.get(CACHE_AWARE_CONTEXT_MARKER)
        explicit = _as_sequence(wrapping.kwargs.get("classes")) if wrapping is not None else []
        classes.extend(explicit)

        imports = marks.get(IMPORTS_MARKER)
        if imports is not None:
            classes.extend(_as_sequence(imports.kwargs.get("classes")))
            classes.extend(imports.args)

        if not explicit:
            classes.extend(_as_sequence(getattr(test_class, "context_configuration", None)))

        return classes

    def get_properties(
        self, test_class: ConfigurationClass, marks: Dict[str, Any]
    ) -> Sequence[str]:
        """Inline properties of the ``cache_aware_context`` marker.

        A present marker always wins, even without ``properties`` (empty).
        ``context_properties`` is only read when the marker is absent.
        """
        wrapping = marks.get(CACHE_AWARE_CONTEXT_MARKER)
        if wrapping is not None:
            return [str(prop) for prop in _as_sequence(wrapping.kwargs.get("properties"))]
        return [str(prop) for prop in _as_sequence(getattr(test_class, "context_properties", None))]

    def get_active_profiles(self, marks: Dict[str, Any]) -> List[str]:
        """Active profiles in declaration order, without duplicates."""
        mark = marks.get(ACTIVE_PROFILES_MARKER)
        if mark is None:
            return []

        profiles: List[str] = []
        for profile in list(mark.args) + _as_sequence(mark.kwargs.get("profiles")):
            name = str(profile)
            if name not in profiles:
                profiles.append(name)
        return profiles


class CacheAwareContextLoader:
    """Loads application contexts through a context cache.

    A context is built by ``context_factory`` only when the cache has none for
    the configuration; the new context is then stored for reuse.

    Thread Safety:
        load_context() and mark_dirty() are serialized by _load_lock so a
        configuration is never built twice concurrently.
    """

    def __init__(self, cache: ContextCache, context_factory: ContextFactory) -> None:
        """Initialize loader.

        Args:
            cache: Cache to look contexts up in (usually an ObservableContextCache).
            context_factory: Builds a context from a configuration.
        """
        self._cache = cache
        self._context_factory = context_factory
        self._load_lock = Lock()

        logger.info("[OCC] Bootstrap context with ObservableCache")

    @property
    def cache(self) -> ContextCache:
        return self._cache

    def load_context(self, config: MergedContextConfiguration) -> Any:
        """Return the context for ``config``, loading it on a cache miss.

        Raises:
            ConfigurationError: If the factory returns None.
        """
        with self._load_lock:
            context = self._cache.get(config)
            if context is not None:
                return context

            context = self._context_factory(config)
            if context is None:
                raise ConfigurationError(
                    f"Context factory returned None for test class {config.test_class_name}"
                )
            self._cache.put(config, context)
            logger.debug(f"[OCC] Loaded new context for {config.test_class_name}")
            return context

    def mark_dirty(
        self,
        config: MergedContextConfiguration,
        hierarchy_mode: HierarchyMode = HierarchyMode.EXHAUSTIVE,
    ) -> None:
        """Remove the context for ``config`` so the next lookup reloads it."""
        with self._load_lock:
            self._cache.remove(config, hierarchy_mode)
        logger.debug(f"[OCC] Context marked dirty for {config.test_class_name}")
