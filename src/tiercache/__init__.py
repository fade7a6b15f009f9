"""tiercache -- a memory + disk key-value cache with per-entry expiry.

Values written to a :class:`~tiercache.cache.CacheEngine` land in a bounded
in-memory tier immediately and are persisted to one file per key in the
background. Reads check memory first, fall back to disk, and treat an entry
past its expiry instant as absent (deleting it from both tiers).

Typical use::

    from tiercache import CacheEngine, Expiry

    with CacheEngine("weather") as cache:
        cache.set("berlin", {"temp": 21}, Expiry.minutes(10))
        cache.get("berlin")

        def fetch(succeed, fail):
            succeed(download_forecast("paris"), Expiry.hours(1))

        cache.get_or_compute("paris", fetch, lambda value, cached, error: ...)

Modules:
    cache: The engine, its memory tier and its disk tier.
    expiry: Expiry policies resolved to absolute instants at write time.
    models: Pydantic models for entries and settings.
    config: XDG directories, atomic writes and the settings file.
    exceptions: Exception hierarchy with exit-code mapping.
    app: The ``tiercache`` command-line tool.
"""

from tiercache.cache import CacheEngine, open_cache
from tiercache.exceptions import ConstructionError, ProducerError, TierCacheError
from tiercache.expiry import Expiry

__version__ = "0.1.0"

__all__ = [
    "CacheEngine",
    "ConstructionError",
    "Expiry",
    "ProducerError",
    "TierCacheError",
    "open_cache",
]
