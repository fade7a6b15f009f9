"""The two-tier cache engine and its tiers.

This package provides :class:`CacheEngine`, a named key-value cache that
keeps hot entries in a bounded memory tier and persists every entry to its
own file under the cache's directory. Each entry expires at an absolute
instant chosen when it is written (see :class:`~tiercache.expiry.Expiry`).

* :mod:`~tiercache.cache.engine` -- the engine, locking and get-or-compute.
* :mod:`~tiercache.cache.fast` -- pluggable in-memory tiers.
* :mod:`~tiercache.cache.durable` -- the one-file-per-entry disk tier.
"""

from tiercache.cache.durable import DurableStore
from tiercache.cache.engine import CacheEngine, ValueTransform, open_cache
from tiercache.cache.fast import FastTier, LRUFastTier, UnboundedFastTier

__all__ = [
    "CacheEngine",
    "DurableStore",
    "FastTier",
    "LRUFastTier",
    "UnboundedFastTier",
    "ValueTransform",
    "open_cache",
]
