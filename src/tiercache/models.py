"""Canonical Pydantic models shared across tiercache modules.

The models fall into two groups:

**Cache records** -- what the tiers hold:
    :class:`Entry`, a value paired with its absolute expiry instant.

**Configuration models** -- serialised as JSON in the user's config
directory and consumed by :func:`~tiercache.cache.open_cache` and the
command-line tool:
    :class:`SerializerName`, :class:`CacheSettings`, :class:`OutputConfig`
    and :class:`GlobalConfig`.
"""

from __future__ import annotations

import enum
from datetime import MAXYEAR, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DISTANT_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
"""Expiry instant of entries that never expire."""


def as_utc(instant: datetime) -> datetime:
    """Return *instant* as an aware UTC datetime; naive values are taken to be UTC.

    Aware instants within a day of either end of the datetime range may not
    fit once shifted to UTC; those clamp to :data:`DISTANT_FUTURE` or to
    ``datetime.min`` in UTC.
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    try:
        return instant.astimezone(timezone.utc)
    except OverflowError:
        if instant.year == MAXYEAR:
            return DISTANT_FUTURE
        return datetime.min.replace(tzinfo=timezone.utc)


# --- Cache records ---


class Entry(BaseModel):
    """A cached value and the instant after which it is no longer served.

    ``expires_at`` is always concrete: entries that never expire carry
    :data:`DISTANT_FUTURE`, so :meth:`is_expired` is one comparison for
    every entry.

    Entries are immutable. A tier that receives an entry from another tier
    gets its own decoded copy rather than a shared reference.

    Example::

        entry = Entry(value="hello", expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc))
        entry.is_expired(datetime.now(timezone.utc))  # False
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: Any = Field(description="The cached payload")
    expires_at: datetime = Field(
        default=DISTANT_FUTURE,
        description="Absolute UTC instant after which the entry is expired",
    )

    @field_validator("expires_at")
    @classmethod
    def _normalise_expiry(cls, value: datetime) -> datetime:
        # datetime.max cannot be shifted across time zones, so leave the
        # sentinel untouched rather than converting it.
        if value.replace(tzinfo=None) == datetime.max:
            return DISTANT_FUTURE
        return as_utc(value)

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` if *now* is strictly past :attr:`expires_at`."""
        return now > self.expires_at


# --- Configuration ---


class SerializerName(str, enum.Enum):
    """Built-in on-disk encodings selectable from configuration."""

    PICKLE = "pickle"
    JSON = "json"


class CacheSettings(BaseModel):
    """Engine settings stored in :class:`GlobalConfig`.

    Passed to :func:`~tiercache.cache.open_cache`; explicit keyword
    arguments to :class:`~tiercache.cache.CacheEngine` bypass it entirely.
    """

    capacity: int = Field(
        default=1000,
        ge=0,
        description="Maximum entries held in memory; 0 keeps every entry",
    )
    serializer: SerializerName = Field(
        default=SerializerName.PICKLE,
        description="On-disk encoding: pickle (any Python value) or json",
    )
    directory: Optional[str] = Field(
        default=None,
        description="Root directory for named caches (defaults to the user cache dir)",
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/tiercache/config.json``.

    Loaded and saved by :func:`~tiercache.config.load_global_config` and
    :func:`~tiercache.config.save_global_config`. Unknown keys are kept in
    ``model_extra`` and written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    cache: CacheSettings = Field(default_factory=CacheSettings)
    output: OutputConfig = Field(default_factory=OutputConfig)
