# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""pytest plugin reporting context cache misses per test class.

Registered through the ``pytest11`` entry point. For each test session the
plugin owns one metrics registry, wraps the host context cache (built by the
configured cache factory) in an ObservableContextCache, and reports the
ranked miss analysis once the session finishes.

Settings (highest precedence first):
- Command line: --occ-config PATH, --no-occ
- ini: occ_cache_factory, occ_context_factory
- .observable_context_cache.yml in the rootdir

Fixtures:
- cache_metrics_registry: Session registry receiving the misses
- observable_context_cache: Session ObservableContextCache
- context_loader: Session CacheAwareContextLoader
- application_context: Context for the requesting test's configuration
"""

import logging
from pathlib import Path
from typing import Any, Iterator, Optional

import pytest

from observable_context_cache.analyzer import GlobalTestExecutionAnalyzer
from observable_context_cache.bootstrap import (
    ACTIVE_PROFILES_MARKER,
    CACHE_AWARE_CONTEXT_MARKER,
    DIRTIES_CONTEXT_MARKER,
    IMPORTS_MARKER,
    CacheAwareContextLoader,
    ContextConfigurationResolver,
    load_factory,
)
from observable_context_cache.cache import ContextCache, ObservableContextCache
from observable_context_cache.config import DEFAULT_CONFIG_FILENAME, Config, ConfigurationError
from observable_context_cache.listeners import DefaultContextCacheMissesListener
from observable_context_cache.logging_setup import setup_logging, teardown_logging
from observable_context_cache.metrics_collector import MetricsCollector
from observable_context_cache.metrics_registry import ContextCacheMetricsRegistry
from observable_context_cache.models import HierarchyMode, MergedContextConfiguration

logger = logging.getLogger(__name__)

PLUGIN_NAME = "observable_context_cache_session"

MARKERS = [
    f"{CACHE_AWARE_CONTEXT_MARKER}(classes=(), properties=()): "
    "configuration classes and inline properties of the application context",
    f"{IMPORTS_MARKER}(classes=()): "
    "additional configuration classes of the application context",
    f"{ACTIVE_PROFILES_MARKER}(*profiles): active profiles of the application context",
    f"{DIRTIES_CONTEXT_MARKER}: remove the application context from the cache after the test",
]

# ini option -> configuration key
INI_OVERRIDES = (
    ("occ_cache_factory", "cache_factory"),
    ("occ_context_factory", "context_factory"),
)


class ObservableContextCachePlugin:
    """Per-session state of the context cache instrumentation."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.registry = ContextCacheMetricsRegistry()
        self.listener = DefaultContextCacheMissesListener(self.registry)
        self.analyzer = GlobalTestExecutionAnalyzer(
            self.registry,
            top_classes_limit=config.top_classes_limit,
            top_profiles_limit=config.top_profiles_limit,
        )
        self.resolver = ContextConfigurationResolver()

        self._metrics_collector: Optional[MetricsCollector] = None
        if config.write_session_metrics:
            self._metrics_collector = MetricsCollector(log_dir=config.metrics_log_dir)
            self._metrics_collector.set_configuration(config.to_dict())

        self._cache: Optional[ObservableContextCache] = None
        self._loader: Optional[CacheAwareContextLoader] = None

    def get_observable_cache(self) -> ObservableContextCache:
        """Build (once) the observable cache over the host cache.

        Raises:
            ConfigurationError: If no cache factory is configured, or it does
                not return a ContextCache.
        """
        if self._cache is None:
            if not self.config.cache_factory:
                raise ConfigurationError(
                    "No context cache factory configured: set 'occ_cache_factory' in the "
                    f"pytest ini file or 'cache_factory' in {DEFAULT_CONFIG_FILENAME}"
                )
            delegate = load_factory(self.config.cache_factory)()
            if not isinstance(delegate, ContextCache):
                raise ConfigurationError(
                    f"Cache factory {self.config.cache_factory!r} returned "
                    f"{type(delegate).__name__}, expected a ContextCache"
                )
            cache = ObservableContextCache(delegate)
            cache.register_listener(self.listener)
            self._cache = cache
        return self._cache

    def get_loader(self) -> CacheAwareContextLoader:
        """Build (once) the loader over the observable cache.

        Raises:
            ConfigurationError: If no context factory is configured.
        """
        if self._loader is None:
            if not self.config.context_factory:
                raise ConfigurationError(
                    "No context factory configured: set 'occ_context_factory' in the "
                    f"pytest ini file or 'context_factory' in {DEFAULT_CONFIG_FILENAME}"
                )
            context_factory = load_factory(self.config.context_factory)
            self._loader = CacheAwareContextLoader(self.get_observable_cache(), context_factory)
        return self._loader

    def resolve_configuration(self, node: Any) -> MergedContextConfiguration:
        """Resolve the configuration of a collected test item.

        Module-level test functions are grouped under their module name.
        """
        test_class = getattr(node, "cls", None)
        if test_class is None:
            module = getattr(node, "module", None)
            test_class = module.__name__ if module is not None else None
        return self.resolver.resolve(test_class, node.iter_markers())

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        self.analyzer.on_test_plan_execution_finished()

        if self._metrics_collector is not None:
            try:
                self._metrics_collector.finalize_and_write(self.registry.snapshot())
            except OSError as e:
                logger.warning(f"[OCC] Unable to write session metrics: {e}")

    def pytest_terminal_summary(
        self, terminalreporter: Any, exitstatus: int, config: pytest.Config
    ) -> None:
        report = self.analyzer.last_report
        if report is None:
            return

        terminalreporter.write_sep("-", "context cache misses")
        for line in report.format_lines():
            terminalreporter.write_line(line)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("observable-context-cache", "context cache miss reporting")
    group.addoption(
        "--occ-config",
        action="store",
        default=None,
        metavar="PATH",
        help=f"path to the configuration file (default: {DEFAULT_CONFIG_FILENAME} in rootdir)",
    )
    group.addoption(
        "--no-occ",
        action="store_true",
        default=False,
        help="disable context cache miss reporting",
    )
    parser.addini(
        "occ_cache_factory",
        help="'package.module:callable' returning the host ContextCache",
        default="",
    )
    parser.addini(
        "occ_context_factory",
        help="'package.module:callable' building a context from a MergedContextConfiguration",
        default="",
    )


def pytest_configure(config: pytest.Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)

    if config.getoption("--no-occ"):
        return

    option_path = config.getoption("--occ-config")
    if option_path:
        config_path = Path(option_path)
    else:
        config_path = Path(config.rootpath) / DEFAULT_CONFIG_FILENAME
    occ_config = Config(config_path=config_path)

    for ini_name, key in INI_OVERRIDES:
        value = config.getini(ini_name)
        if value:
            occ_config.override(key, value)

    if not occ_config.enabled:
        return

    if occ_config.structured_log_dir is not None:
        setup_logging(log_dir=occ_config.structured_log_dir)

    config.pluginmanager.register(ObservableContextCachePlugin(occ_config), PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is None:
        return

    config.pluginmanager.unregister(plugin, PLUGIN_NAME)
    if plugin.config.structured_log_dir is not None:
        teardown_logging()


def _get_plugin(config: pytest.Config) -> ObservableContextCachePlugin:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is None:
        pytest.skip("context cache miss reporting is disabled")
    return plugin


@pytest.fixture(scope="session")
def cache_metrics_registry(pytestconfig: pytest.Config) -> ContextCacheMetricsRegistry:
    """Registry receiving this session's context cache misses."""
    return _get_plugin(pytestconfig).registry


@pytest.fixture(scope="session")
def observable_context_cache(pytestconfig: pytest.Config) -> ObservableContextCache:
    """Observable cache wrapping the configured host cache."""
    return _get_plugin(pytestconfig).get_observable_cache()


@pytest.fixture(scope="session")
def context_loader(pytestconfig: pytest.Config) -> CacheAwareContextLoader:
    """Loader resolving contexts through the observable cache."""
    return _get_plugin(pytestconfig).get_loader()


@pytest.fixture
def application_context(
    request: pytest.FixtureRequest, context_loader: CacheAwareContextLoader
) -> Iterator[Any]:
    """Application context for the requesting test, shared through the cache."""
    plugin = _get_plugin(request.config)
    context_config = plugin.resolve_configuration(request.node)

    yield context_loader.load_context(context_config)

    if request.node.get_closest_marker(DIRTIES_CONTEXT_MARKER) is not None:
        context_loader.mark_dirty(context_config, HierarchyMode.EXHAUSTIVE)
