# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Data models for observable context cache instrumentation.

This module defines the value types shared by the cache decorator, the
metrics registry and the suite analyzer:
- MergedContextConfiguration: Cache key describing one test context
- HierarchyMode: Removal scope passed through to the host cache
- CacheMissInfoKey: Groups misses by originating test class
- CacheMissEntry: A single observed cache miss
- CacheMissInfo: Append-only history of misses for one test class

All types are immutable. Aggregates grow by returning new instances, so a
registry snapshot can be handed to any reader without copying entries.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

# A configuration class is either a real class or a pre-rendered dotted name
ConfigurationClass = Union[type, str]


def qualified_name(value: ConfigurationClass) -> str:
    """Render a class (or an already rendered name) as ``module.QualName``.

    Args:
        value: Class object or string.

    Returns:
        Fully qualified dotted name. Strings are returned unchanged.
    """
    if isinstance(value, str):
        return value
    module = getattr(value, "__module__", None)
    name = getattr(value, "__qualname__", None) or getattr(value, "__name__", repr(value))
    if module and module != "builtins":
        return f"{module}.{name}"
    return name


def _unique_in_order(values: Iterable[Any]) -> Tuple[Any, ...]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


class HierarchyMode(Enum):
    """Scope of a context removal in a context hierarchy.

    EXHAUSTIVE removes the context and every context in its hierarchy,
    CURRENT_LEVEL only the context and its children.
    """

    EXHAUSTIVE = "exhaustive"
    CURRENT_LEVEL = "current_level"


@dataclass(frozen=True)
class MergedContextConfiguration:
    """Lookup key for an application context in the context cache.

    Two test classes declaring the same configuration classes, profiles and
    properties share a context. The originating ``test_class`` is carried for
    diagnostics and does not take part in equality or hashing.
    """

    test_class: Optional[ConfigurationClass] = field(default=None, compare=False)
    classes: Tuple[ConfigurationClass, ...] = ()
    active_profiles: Tuple[str, ...] = ()
    properties: Tuple[str, ...] = ()
    parent: Optional["MergedContextConfiguration"] = None

    def __post_init__(self) -> None:
        # Normalize any iterable input into de-duplicated tuples
        object.__setattr__(self, "classes", _unique_in_order(self.classes))
        object.__setattr__(self, "active_profiles", _unique_in_order(self.active_profiles))
        object.__setattr__(self, "properties", tuple(self.properties))

    @property
    def test_class_name(self) -> Optional[str]:
        """Fully qualified name of the originating test class, if any."""
        if self.test_class is None:
            return None
        return qualified_name(self.test_class)

    def class_names(self) -> Tuple[str, ...]:
        """Configuration classes rendered as fully qualified names."""
        return tuple(qualified_name(cls) for cls in self.classes)

    def has_parent(self) -> bool:
        """Whether this configuration belongs to a context hierarchy."""
        return self.parent is not None


@dataclass(frozen=True)
class CacheMissInfoKey:
    """Key used to group cache miss metrics by test class.

    Attributes:
        test_class: Fully qualified name of the test class.
    """

    test_class: str

    @property
    def simple_name(self) -> str:
        """Last component of the dotted test class name."""
        return self.test_class.rsplit(".", 1)[-1]

    @classmethod
    def from_config(cls, config: MergedContextConfiguration) -> "CacheMissInfoKey":
        """Derive the key from the configuration's originating test class.

        Raises:
            ValueError: If the configuration has no test class.
        """
        name = config.test_class_name
        if not name:
            raise ValueError("Cannot derive a cache miss key: configuration has no test class")
        return cls(test_class=name)

    def __str__(self) -> str:
        return self.test_class


@dataclass(frozen=True)
class CacheMissEntry:
    """A single cache miss event.

    Attributes:
        timestamp: UTC time at which the miss was observed.
        classes: Configuration classes of the missed context, in declaration order.
        active_profiles: Active profiles of the missed context, in declaration order.
    """

    timestamp: datetime
    classes: Tuple[str, ...] = ()
    active_profiles: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "classes", tuple(self.classes))
        object.__setattr__(self, "active_profiles", tuple(self.active_profiles))

    @classmethod
    def from_config(cls, config: MergedContextConfiguration) -> "CacheMissEntry":
        """Build an entry for a miss on ``config`` observed now."""
        return cls(
            timestamp=datetime.now(timezone.utc),
            classes=config.class_names(),
            active_profiles=config.active_profiles,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "timestamp": self.timestamp.isoformat(timespec="milliseconds"),
            "classes": list(self.classes),
            "active_profiles": list(self.active_profiles),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheMissEntry":
        """Deserialize from JSON-compatible dict.

        Raises:
            KeyError: If the timestamp is missing.
        """
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            classes=tuple(data.get("classes", [])),
            active_profiles=tuple(data.get("active_profiles", [])),
        )


@dataclass(frozen=True)
class CacheMissInfo:
    """Complete history of context cache misses for one test class.

    Never empty: use ``with_first`` to start a history and ``with_new`` to
    extend it. Both return new instances.
    """

    entries: Tuple[CacheMissEntry, ...]

    def __post_init__(self) -> None:
        entries = tuple(self.entries)
        if not entries:
            raise ValueError("CacheMissInfo requires at least one entry, use with_first()")
        object.__setattr__(self, "entries", entries)

    @classmethod
    def with_first(cls, entry: CacheMissEntry) -> "CacheMissInfo":
        """Start a history with its first recorded miss."""
        return cls(entries=(entry,))

    def with_new(self, entry: CacheMissEntry) -> "CacheMissInfo":
        """Return a new history with ``entry`` appended."""
        return CacheMissInfo(entries=self.entries + (entry,))

    @property
    def miss_count(self) -> int:
        return len(self.entries)

    def to_list(self) -> list:
        """Serialize entries to a JSON-compatible list."""
        return [entry.to_dict() for entry in self.entries]
