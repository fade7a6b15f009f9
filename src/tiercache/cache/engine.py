"""Two-tier cache engine: memory in front of one-file-per-entry disk storage.

:class:`CacheEngine` owns a :class:`~tiercache.cache.fast.FastTier`, a
:class:`~tiercache.cache.durable.DurableStore` and the concurrency rules
that keep the two consistent.

Locking
    A single :class:`~tiercache.rwlock.ReadWriteLock` guards both tiers.
    Lookups take it shared; writes, removals and purges take it exclusive.
    The memory tier is additionally wrapped in a private mutex because an
    LRU lookup mutates recency order even for readers.

Disk work
    Writes and deletes are queued on a one-thread executor while the
    exclusive lock is held, so they reach the disk in lock-acquisition
    order. A read that misses memory first waits for whatever is queued for
    its token, so it never sees a file older than the last completed
    :meth:`~CacheEngine.set`.

Expiry
    Every entry carries an absolute ``expires_at``. A read that finds an
    expired entry drops its shared hold, re-acquires exclusively, checks the
    entry is still the expired one and deletes it from both tiers.

Example::

    with CacheEngine("thumbnails") as cache:
        cache.set("avatar/42", image_bytes, Expiry.days(7))
        cache.get("avatar/42")
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from tiercache.cache.durable import DurableStore
from tiercache.cache.fast import FastTier, make_fast_tier
from tiercache.config import default_cache_location
from tiercache.exceptions import CacheClosedError, ConstructionError, ProducerError
from tiercache.expiry import Expiry
from tiercache.keys import sanitize_key
from tiercache.models import CacheSettings, Entry
from tiercache.rwlock import ReadWriteLock
from tiercache.serializers import PickleSerializer, Serializer, get_serializer

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000

Clock = Callable[[], datetime]
Completion = Callable[[Any, bool, Optional[BaseException]], None]
Succeed = Callable[..., None]
Fail = Callable[..., None]
Producer = Callable[[Succeed, Fail], None]


class ValueTransform(Protocol):
    """Hook applied to values on their way into and out of the cache."""

    def on_write(self, value: Any) -> Any: ...

    def on_read(self, value: Any) -> Any: ...


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


_MISSING: Any = _Missing()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEngine:
    """A named cache with a memory tier, a disk tier and per-entry expiry.

    Args:
        name: Name of the cache; also the directory name when *directory*
            is omitted.
        directory: Where entry files are stored. Defaults to
            ``<user cache dir>/tiercache/<name>``.
        capacity: Size of the default LRU memory tier; ``0`` disables
            eviction. Ignored when *fast_tier* is given.
        serializer: Encoder for entry files. Defaults to
            :class:`~tiercache.serializers.PickleSerializer`.
        fast_tier: A custom memory tier implementation.
        transform: Optional hook applied to every value written and read.
        clock: Returns the current UTC time; injectable for tests.

    Raises:
        ConstructionError: If the storage directory cannot be created.
    """

    def __init__(
        self,
        name: str,
        directory: Optional[str | Path] = None,
        *,
        capacity: int = DEFAULT_CAPACITY,
        serializer: Optional[Serializer] = None,
        fast_tier: Optional[FastTier] = None,
        transform: Optional[ValueTransform] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.name = name
        try:
            location = (
                Path(directory).expanduser()
                if directory is not None
                else default_cache_location(name)
            )
            location.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConstructionError(f"Cannot create cache directory for '{name}': {exc}") from exc

        self._directory = location
        self._fast = fast_tier if fast_tier is not None else make_fast_tier(capacity)
        self._durable = DurableStore(location, serializer or PickleSerializer())
        self._transform = transform
        self._clock = clock or _utcnow

        self._lock = ReadWriteLock()
        self._fast_mutex = threading.Lock()
        self._pending_mutex = threading.Lock()
        self._pending: dict[str, Future[Any]] = {}
        self._barrier: Optional[Future[Any]] = None
        self._disk = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tiercache-disk-{name}")
        self._notify = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tiercache-notify-{name}")
        self._closed = False
        logger.debug("Opened cache '%s' at %s", name, location)

    @property
    def directory(self) -> Path:
        """The directory holding this cache's entry files."""
        return self._directory

    def __repr__(self) -> str:
        return f"CacheEngine(name={self.name!r}, directory={str(self._directory)!r})"

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get(self, key: str, *, include_expired: bool = False) -> Any:
        """Return the live value for *key*, or ``None``.

        An expired entry is deleted from both tiers and ``None`` returned.

        Args:
            key: The cache key.
            include_expired: Return an expired value instead of deleting
                it. Intended for diagnostics.
        """
        value = self._get_value(key, include_expired)
        return None if value is _MISSING else value

    def all_values(self, include_expired: bool = False) -> list[Any]:
        """Return the values of every entry in either tier.

        Expired entries are left out and deleted unless *include_expired*
        is set. The scan holds the shared lock throughout and does not
        promote disk entries into memory.
        """
        raw: list[Any] = []
        expired: list[str] = []
        with self._lock.shared():
            self._check_open()
            self._drain()
            now = self._clock()
            for token in self._known_tokens():
                entry = self._peek(token)
                if entry is None:
                    continue
                if entry.is_expired(now) and not include_expired:
                    expired.append(token)
                    continue
                raw.append(entry.value)
        for token in expired:
            self._remove_if_expired(token)
        return [self._on_read(value) for value in raw]

    def __getitem__(self, key: str) -> Any:
        value = self._get_value(key, False)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._get_value(key, False) is not _MISSING

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any, expires: Optional[Expiry] = None) -> None:
        """Store *value* under *key* until the instant *expires* denotes.

        The memory tier is updated before this returns. The disk write is
        queued behind any earlier disk work and completes asynchronously;
        :meth:`flush` waits for it.

        Args:
            key: The cache key.
            value: Any value the configured serializer can encode. Values it
                cannot encode are kept in memory only.
            expires: Expiry policy, resolved against the current time.
                Defaults to :meth:`Expiry.never`.
        """
        policy = expires if expires is not None else Expiry.never()
        entry = Entry(value=self._on_write(value), expires_at=policy.resolve(self._clock()))
        token = sanitize_key(key)

        with self._lock.exclusive():
            self._check_open()
            with self._fast_mutex:
                self._fast.insert(token, entry)
            payload = self._durable.encode(entry)
            if payload is None:
                # An older file must not resurface once memory evicts the entry.
                self._enqueue(token, partial(self._durable.delete, token))
            else:
                self._enqueue(token, partial(self._durable.write, token, payload))

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    # ------------------------------------------------------------------
    # Removing
    # ------------------------------------------------------------------

    def remove(self, key: str) -> None:
        """Delete *key* from both tiers. Removing an absent key is a no-op."""
        token = sanitize_key(key)
        with self._lock.exclusive():
            self._check_open()
            self._evict(token)

    def __delitem__(self, key: str) -> None:
        self.remove(key)

    def remove_all(self, completion: Optional[Callable[[], None]] = None) -> None:
        """Delete every entry from both tiers.

        Args:
            completion: When given, file deletion runs in the background and
                ``completion()`` is called on an engine thread once every
                file is gone. Without it, this call blocks until then.
                Exceptions raised by ``completion`` are logged, not propagated.
        """
        with self._lock.exclusive():
            self._check_open()
            with self._fast_mutex:
                self._fast.remove_all()
            future = self._disk.submit(self._durable.delete_all)
            self._barrier = future
            if completion is None:
                removed = future.result()
                logger.debug("Cleared cache '%s' (%d files)", self.name, removed)
            else:
                notify = partial(self._notify.submit, self._run_completion, completion)
                future.add_done_callback(lambda _f: notify())

    def remove_expired(self) -> int:
        """Delete every expired entry from both tiers and return how many went.

        Safe to call repeatedly and on an empty cache.
        """
        removed = 0
        with self._lock.exclusive():
            self._check_open()
            self._drain()
            now = self._clock()
            for token in self._known_tokens():
                entry = self._peek(token)
                if entry is not None and entry.is_expired(now):
                    self._evict(token)
                    removed += 1
        if removed:
            logger.debug("Purged %d expired entries from '%s'", removed, self.name)
        return removed

    # ------------------------------------------------------------------
    # Get-or-compute
    # ------------------------------------------------------------------

    def get_or_compute(self, key: str, producer: Producer, completion: Completion) -> None:
        """Deliver the cached value for *key*, or have *producer* create it.

        If a live value is cached, ``completion(value, True, None)`` is
        called immediately and *producer* is not invoked.

        Otherwise ``producer(succeed, fail)`` runs on the calling thread and
        must eventually call exactly one of:

        * ``succeed(value, expires=None)`` -- the value is stored with
          :meth:`set`, then ``completion(value, False, None)`` is called.
        * ``fail(error=None)`` -- nothing is stored and
          ``completion(None, False, error)`` is called. A missing *error*
          is replaced by a :class:`~tiercache.exceptions.ProducerError`.

        An exception raised by *producer* before it calls either callback is
        treated as ``fail(exc)``. Concurrent callers are not deduplicated:
        two calls that both miss will both run their producers.
        """
        cached = self._get_value(key, False)
        if cached is not _MISSING:
            completion(cached, True, None)
            return

        settled = False

        def succeed(value: Any, expires: Optional[Expiry] = None) -> None:
            nonlocal settled
            settled = True
            self.set(key, value, expires)
            completion(value, False, None)

        def fail(error: Optional[BaseException] = None) -> None:
            nonlocal settled
            settled = True
            if error is None:
                error = ProducerError(f"Producer for key '{key}' failed")
            completion(None, False, error)

        logger.debug("Cache miss for '%s'; invoking producer", key)
        try:
            producer(succeed, fail)
        except Exception as exc:
            if settled:
                raise
            fail(exc)

    def get_or_set(self, key: str, factory: Callable[[], Any], expires: Optional[Expiry] = None) -> Any:
        """Return the cached value for *key*, or store and return ``factory()``.

        Exceptions from *factory* propagate and nothing is stored.
        """
        cached = self._get_value(key, False)
        if cached is not _MISSING:
            return cached
        value = factory()
        self.set(key, value, expires)
        return value

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Block until every queued disk write and delete has finished."""
        self._check_open()
        self._drain()

    def stats(self) -> dict[str, Any]:
        """Return entry counts and locations for display."""
        with self._lock.shared():
            self._check_open()
            self._drain()
            with self._fast_mutex:
                memory_entries = len(self._fast)
            return {
                "name": self.name,
                "directory": str(self._directory),
                "capacity": getattr(self._fast, "capacity", None),
                "memory_entries": memory_entries,
                "disk_entries": len(self._durable.tokens()),
            }

    def close(self) -> None:
        """Finish queued disk work and stop the engine's threads.

        Entry files stay on disk. Calling ``close()`` twice is safe; any
        other operation after it raises
        :class:`~tiercache.exceptions.CacheClosedError`.
        """
        with self._lock.exclusive():
            if self._closed:
                return
            self._closed = True
        self._disk.shutdown(wait=True)
        self._notify.shutdown(wait=True)
        logger.debug("Closed cache '%s'", self.name)

    def __enter__(self) -> "CacheEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_value(self, key: str, include_expired: bool) -> Any:
        """Expiry-aware lookup returning the transformed value or ``_MISSING``."""
        token = sanitize_key(key)
        with self._lock.shared():
            self._check_open()
            now = self._clock()
            entry = self._lookup(token, now)
        if entry is None:
            return _MISSING
        if entry.is_expired(now) and not include_expired:
            self._remove_if_expired(token)
            return _MISSING
        return self._on_read(entry.value)

    def _lookup(self, token: str, now: datetime) -> Optional[Entry]:
        """Find *token* in memory, then on disk, promoting live disk hits.

        Caller holds the lock in either mode.
        """
        with self._fast_mutex:
            entry = self._fast.lookup(token)
        if entry is not None:
            return entry
        self._await_disk(token)
        entry = self._durable.read(token)
        if entry is not None and not entry.is_expired(now):
            with self._fast_mutex:
                self._fast.insert(token, entry)
        return entry

    def _peek(self, token: str) -> Optional[Entry]:
        """Like :meth:`_lookup` without promotion; queued disk work must be drained."""
        with self._fast_mutex:
            entry = self._fast.lookup(token)
        if entry is not None:
            return entry
        return self._durable.read(token)

    def _remove_if_expired(self, token: str) -> None:
        with self._lock.exclusive():
            if self._closed:
                return
            self._await_disk(token)
            entry = self._peek(token)
            if entry is not None and entry.is_expired(self._clock()):
                self._evict(token)

    def _evict(self, token: str) -> None:
        """Drop *token* from both tiers. Caller holds the exclusive lock."""
        with self._fast_mutex:
            self._fast.remove(token)
        self._enqueue(token, partial(self._durable.delete, token))

    def _known_tokens(self) -> list[str]:
        with self._fast_mutex:
            in_memory = set(self._fast.keys())
        return sorted(in_memory.union(self._durable.tokens()))

    def _enqueue(self, token: str, job: Callable[[], Any]) -> None:
        """Queue disk work for *token*. Caller holds the exclusive lock."""
        future = self._disk.submit(job)
        with self._pending_mutex:
            self._pending[token] = future
        future.add_done_callback(partial(self._forget, token))

    def _forget(self, token: str, future: Future[Any]) -> None:
        with self._pending_mutex:
            if self._pending.get(token) is future:
                del self._pending[token]

    def _await_disk(self, token: str) -> None:
        """Wait until disk work queued for *token* (or for all tokens) has run."""
        barrier = self._barrier
        with self._pending_mutex:
            future = self._pending.get(token)
        if barrier is not None:
            barrier.result()
        if future is not None:
            future.result()

    def _drain(self) -> None:
        """Wait for all queued disk work."""
        self._disk.submit(lambda: None).result()

    def _check_open(self) -> None:
        if self._closed:
            raise CacheClosedError(f"Cache '{self.name}' is closed")

    def _run_completion(self, completion: Callable[[], None]) -> None:
        """Call a :meth:`remove_all` completion, logging anything it raises."""
        try:
            completion()
        except Exception:
            logger.exception("remove_all completion for cache '%s' failed", self.name)

    def _on_write(self, value: Any) -> Any:
        return value if self._transform is None else self._transform.on_write(value)

    def _on_read(self, value: Any) -> Any:
        return value if self._transform is None else self._transform.on_read(value)


def open_cache(
    name: str,
    directory: Optional[str | Path] = None,
    settings: Optional[CacheSettings] = None,
    *,
    transform: Optional[ValueTransform] = None,
) -> CacheEngine:
    """Create a :class:`CacheEngine` from :class:`~tiercache.models.CacheSettings`.

    Args:
        name: Cache name.
        directory: Explicit storage directory; overrides
            ``settings.directory``.
        settings: Capacity, serializer and root directory. Defaults to
            ``CacheSettings()``.
        transform: Optional value hook passed to the engine.

    Raises:
        ConstructionError: If the storage directory cannot be created.
    """
    settings = settings or CacheSettings()
    location = directory if directory is not None else default_cache_location(name, settings.directory)
    return CacheEngine(
        name,
        location,
        capacity=settings.capacity,
        serializer=get_serializer(settings.serializer),
        transform=transform,
    )
