"""In-memory tier implementations.

The engine talks to its memory tier through the small :class:`FastTier`
interface, so the eviction policy is pluggable. Two implementations ship:

* :class:`LRUFastTier` -- bounded; the least recently used entry is dropped
  when an insert would exceed capacity. Backed by
  :class:`cachetools.LRUCache`.
* :class:`UnboundedFastTier` -- keeps everything until removed.

Neither class locks. A lookup in an LRU reorders it, so even concurrent
reads must be serialised by the caller.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Optional, Protocol

from cachetools import LRUCache

from tiercache.models import Entry


class FastTier(Protocol):
    """Structural type for memory tiers accepted by the engine."""

    def insert(self, key: str, entry: Entry) -> None: ...

    def lookup(self, key: str) -> Optional[Entry]: ...

    def remove(self, key: str) -> None: ...

    def remove_all(self) -> None: ...

    def keys(self) -> list[str]: ...

    def __len__(self) -> int: ...


class _MappingTier:
    """Shared behaviour for tiers that wrap a mutable mapping."""

    _data: MutableMapping[str, Entry]

    def insert(self, key: str, entry: Entry) -> None:
        self._data[key] = entry

    def lookup(self, key: str) -> Optional[Entry]:
        return self._data.get(key)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def remove_all(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)


class LRUFastTier(_MappingTier):
    """Capacity-bounded memory tier with least-recently-used eviction.

    Args:
        capacity: Maximum number of entries; must be at least 1.

    Example::

        tier = LRUFastTier(capacity=2)
        tier.insert("a", Entry(value=1))
        tier.insert("b", Entry(value=2))
        tier.lookup("a")                  # "a" is now most recent
        tier.insert("c", Entry(value=3))  # evicts "b"
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"LRU capacity must be at least 1, got {capacity}")
        self._data: LRUCache[str, Entry] = LRUCache(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return int(self._data.maxsize)


class UnboundedFastTier(_MappingTier):
    """Memory tier without eviction."""

    def __init__(self) -> None:
        self._data: dict[str, Entry] = {}

    @property
    def capacity(self) -> Optional[int]:
        return None


def make_fast_tier(capacity: int) -> FastTier:
    """Return an :class:`LRUFastTier` of *capacity*, or unbounded when it is 0."""
    if capacity == 0:
        return UnboundedFastTier()
    return LRUFastTier(capacity)
