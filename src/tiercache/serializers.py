"""On-disk encodings for cache entries.

A serializer turns an :class:`~tiercache.models.Entry` into bytes and back.
The durable tier only ever sees bytes, so any object with ``dumps`` and
``loads`` methods can be passed to :class:`~tiercache.cache.CacheEngine`.

Both built-in serializers encode exactly two fields, the value and the
expiry instant. ``loads`` raises :class:`ValueError` for anything it cannot
decode; the durable tier treats that as a missing entry.
"""

from __future__ import annotations

import pickle
from typing import Protocol

from pydantic import ValidationError

from tiercache.models import Entry, SerializerName

# What pickle.loads raises for truncated or foreign bytes.
_PICKLE_FAULTS = (
    pickle.UnpicklingError,
    EOFError,
    AttributeError,
    ImportError,
    IndexError,
    KeyError,
    TypeError,
)


class Serializer(Protocol):
    """Structural type for entry encoders accepted by the engine."""

    def dumps(self, entry: Entry) -> bytes: ...

    def loads(self, data: bytes) -> Entry: ...


class PickleSerializer:
    """Pickle-based encoding that round-trips any picklable Python value.

    Only load cache directories you trust: unpickling executes code named
    by the data.

    Args:
        protocol: Pickle protocol version used when writing.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def dumps(self, entry: Entry) -> bytes:
        record = {"value": entry.value, "expires_at": entry.expires_at}
        return pickle.dumps(record, protocol=self._protocol)

    def loads(self, data: bytes) -> Entry:
        try:
            record = pickle.loads(data)
        except _PICKLE_FAULTS as exc:
            raise ValueError(f"Undecodable pickle record: {exc}") from exc
        except Exception as exc:
            # Damaged frames can also surface as OverflowError or MemoryError.
            raise ValueError(f"Unexpected pickle decoding error: {exc!r}") from exc
        if not isinstance(record, dict) or "value" not in record:
            raise ValueError("Pickle record is not a cache entry")
        return Entry.model_validate(record)


class JsonSerializer:
    """JSON encoding for values made of dicts, lists, strings, numbers and booleans.

    Files stay human-readable. Values that JSON cannot represent fail at write time; the engine logs
    the failure and keeps the value in memory only.
    """

    def dumps(self, entry: Entry) -> bytes:
        return entry.model_dump_json().encode("utf-8")

    def loads(self, data: bytes) -> Entry:
        try:
            return Entry.model_validate_json(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid JSON cache record: {exc}") from exc


def get_serializer(name: SerializerName | str) -> Serializer:
    """Return a fresh instance of the built-in serializer called *name*.

    Raises:
        ValueError: If *name* is not a known serializer.
    """
    kind = SerializerName(name)
    if kind is SerializerName.JSON:
        return JsonSerializer()
    return PickleSerializer()
