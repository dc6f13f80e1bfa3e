# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Suite-level analysis of context cache misses.

At the end of a test run the analyzer reads a registry snapshot and logs:
- A success message if no context cache misses were detected
- The number of test classes with at least one miss
- The top test classes ranked by miss count
- The most frequent active profiles across all misses

Example output:
    [OCC] Cache Miss Analysis:
    [OCC] Total test classes with cache misses: 2
    [OCC] /!\\ MyControllerTest - 3 cache misses
    [OCC] /!\\ UserApiTest - 2 cache misses
    [OCC] Most common profiles: test=5, integration=2

Ties are broken by first-seen order: classes by their first miss, profiles
by their first occurrence. Analysis never mutates the registry, so running
it twice on unchanged data produces the same report.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from observable_context_cache.metrics_registry import ContextCacheMetricsRegistry
from observable_context_cache.models import CacheMissInfo, CacheMissInfoKey

logger = logging.getLogger(__name__)

DEFAULT_TOP_CLASSES_LIMIT = 5
DEFAULT_TOP_PROFILES_LIMIT = 3


@dataclass(frozen=True)
class CacheMissReport:
    """Result of a cache miss analysis.

    Attributes:
        total_classes: Number of test classes with at least one miss.
        top_classes: (key, miss count) pairs, most misses first.
        top_profiles: (profile, occurrences) pairs, most frequent first.
    """

    total_classes: int = 0
    top_classes: Tuple[Tuple[CacheMissInfoKey, int], ...] = ()
    top_profiles: Tuple[Tuple[str, int], ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.total_classes == 0

    def format_profiles(self) -> str:
        return ", ".join(f"{profile}={count}" for profile, count in self.top_profiles)

    def format_lines(self) -> List[str]:
        """Render the report as human-readable lines."""
        if self.is_empty:
            return ["[OCC] Perfect! No cache misses detected"]

        lines = [
            "[OCC] Cache Miss Analysis:",
            f"[OCC] Total test classes with cache misses: {self.total_classes}",
        ]
        for key, count in self.top_classes:
            lines.append(f"[OCC] /!\\ {key.simple_name} - {count} cache misses")
        lines.append(f"[OCC] Most common profiles: {{{self.format_profiles()}}}")
        return lines


def rank_classes(
    snapshot: Mapping[CacheMissInfoKey, CacheMissInfo], limit: int
) -> List[Tuple[CacheMissInfoKey, int]]:
    """Rank test classes by miss count, descending.

    Args:
        snapshot: Registry snapshot, iterated in its own order.
        limit: Maximum number of classes to return.

    Returns:
        Up to ``limit`` (key, count) pairs.
    """
    counts = [(key, info.miss_count) for key, info in snapshot.items()]
    # sorted() is stable, equal counts keep snapshot order
    return sorted(counts, key=lambda item: item[1], reverse=True)[:limit]


def rank_profiles(
    snapshot: Mapping[CacheMissInfoKey, CacheMissInfo], limit: int
) -> List[Tuple[str, int]]:
    """Count active profiles over every recorded miss.

    Args:
        snapshot: Registry snapshot.
        limit: Maximum number of profiles to return.

    Returns:
        Up to ``limit`` (profile, count) pairs, most frequent first.
    """
    profiles: Counter = Counter()
    for info in snapshot.values():
        for entry in info.entries:
            profiles.update(entry.active_profiles)

    return sorted(profiles.items(), key=lambda item: item[1], reverse=True)[:limit]


class GlobalTestExecutionAnalyzer:
    """Reports context cache misses collected during a test run.

    Usage:
        analyzer = GlobalTestExecutionAnalyzer(registry)
        analyzer.on_test_plan_execution_finished()
    """

    def __init__(
        self,
        registry: ContextCacheMetricsRegistry,
        top_classes_limit: int = DEFAULT_TOP_CLASSES_LIMIT,
        top_profiles_limit: int = DEFAULT_TOP_PROFILES_LIMIT,
    ) -> None:
        """Initialize analyzer.

        Args:
            registry: Registry to read snapshots from.
            top_classes_limit: Number of test classes to report (default: 5).
            top_profiles_limit: Number of profiles to report (default: 3).

        Raises:
            ValueError: If a limit is not positive.
        """
        if top_classes_limit <= 0 or top_profiles_limit <= 0:
            raise ValueError(
                f"Report limits must be positive, got classes={top_classes_limit}, "
                f"profiles={top_profiles_limit}"
            )
        self._registry = registry
        self._top_classes_limit = top_classes_limit
        self._top_profiles_limit = top_profiles_limit
        self._last_report: Optional[CacheMissReport] = None

    @property
    def last_report(self) -> Optional[CacheMissReport]:
        return self._last_report

    def on_test_plan_execution_finished(self) -> CacheMissReport:
        """Entry point called once the whole test run has finished."""
        logger.info("[OCC] Test plan execution finished!")
        return self.analyze_results()

    def build_report(self) -> CacheMissReport:
        """Compute the report from a fresh snapshot without logging it."""
        snapshot = self._registry.snapshot()
        if not snapshot:
            return CacheMissReport()

        return CacheMissReport(
            total_classes=len(snapshot),
            top_classes=tuple(rank_classes(snapshot, self._top_classes_limit)),
            top_profiles=tuple(rank_profiles(snapshot, self._top_profiles_limit)),
        )

    def analyze_results(self) -> CacheMissReport:
        """Compute the report and log it.

        Returns:
            The logged report.
        """
        report = self.build_report()
        self._last_report = report

        if report.is_empty:
            logger.info("[OCC] Perfect! No cache misses detected")
            return report

        logger.warning("[OCC] Cache Miss Analysis:")
        logger.warning(f"[OCC] Total test classes with cache misses: {report.total_classes}")

        # Top offenders
        for key, count in report.top_classes:
            logger.warning(f"[OCC] /!\\ {key.simple_name} - {count} cache misses")

        logger.info(f"[OCC] Most common profiles: {{{report.format_profiles()}}}")
        return report
