"""Expiry policies and their conversion to absolute instants.

An :class:`Expiry` describes *when* a value written with
:meth:`~tiercache.cache.CacheEngine.set` should stop being served. It is
resolved once, at write time, against the wall clock at the moment of the
call; the resulting instant is what both tiers store and compare against.

Example::

    Expiry.never()                  # stored as DISTANT_FUTURE
    Expiry.seconds(30)              # now + 30s
    Expiry.months(1)                # same day next month, clamped to month end
    Expiry.at(datetime(2031, 1, 1)) # naive instants are UTC
"""

from __future__ import annotations

import calendar
import enum
import math
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tiercache.models import DISTANT_FUTURE, as_utc


class ExpiryUnit(str, enum.Enum):
    """The kind of offset an :class:`Expiry` applies."""

    NEVER = "never"
    INSTANT = "instant"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    MONTHS = "months"
    YEARS = "years"


_FIXED_UNITS = {
    ExpiryUnit.SECONDS: 1,
    ExpiryUnit.MINUTES: 60,
    ExpiryUnit.HOURS: 60 * 60,
    ExpiryUnit.DAYS: 24 * 60 * 60,
}


class Expiry(BaseModel):
    """An expiry policy, resolved to an absolute instant by :meth:`resolve`.

    Build instances with the class-method constructors rather than the
    field initialiser.
    """

    model_config = ConfigDict(frozen=True)

    unit: ExpiryUnit
    amount: float = Field(default=0, description="Offset in units of `unit`")
    instant: Optional[datetime] = Field(
        default=None, description="Absolute expiry for the INSTANT unit"
    )

    @model_validator(mode="after")
    def _check_shape(self) -> "Expiry":
        if not math.isfinite(self.amount):
            raise ValueError("expiry amount must be a finite number")
        if self.unit is ExpiryUnit.INSTANT and self.instant is None:
            raise ValueError("an INSTANT expiry needs an instant")
        if self.unit in (ExpiryUnit.MONTHS, ExpiryUnit.YEARS) and self.amount != int(self.amount):
            raise ValueError(f"{self.unit.value} expiry needs a whole number")
        return self

    # --- Constructors ---

    @classmethod
    def never(cls) -> "Expiry":
        return cls(unit=ExpiryUnit.NEVER)

    @classmethod
    def at(cls, instant: datetime) -> "Expiry":
        """Expire at *instant* verbatim (naive values are UTC)."""
        return cls(unit=ExpiryUnit.INSTANT, instant=instant)

    @classmethod
    def seconds(cls, amount: float) -> "Expiry":
        return cls(unit=ExpiryUnit.SECONDS, amount=amount)

    @classmethod
    def minutes(cls, amount: float) -> "Expiry":
        return cls(unit=ExpiryUnit.MINUTES, amount=amount)

    @classmethod
    def hours(cls, amount: float) -> "Expiry":
        return cls(unit=ExpiryUnit.HOURS, amount=amount)

    @classmethod
    def days(cls, amount: float) -> "Expiry":
        return cls(unit=ExpiryUnit.DAYS, amount=amount)

    @classmethod
    def months(cls, amount: int) -> "Expiry":
        return cls(unit=ExpiryUnit.MONTHS, amount=amount)

    @classmethod
    def years(cls, amount: int) -> "Expiry":
        return cls(unit=ExpiryUnit.YEARS, amount=amount)

    # --- Resolution ---

    def resolve(self, now: datetime) -> datetime:
        """Return the absolute UTC instant this policy denotes relative to *now*.

        Offsets that would run past the largest representable datetime
        resolve to :data:`~tiercache.models.DISTANT_FUTURE`; negative ones
        that run past the smallest resolve to ``datetime.min``. Absolute
        instants too close to either end to shift into UTC clamp the same way.

        Args:
            now: The wall-clock time of the write (aware or naive UTC).
        """
        if self.unit is ExpiryUnit.NEVER:
            return DISTANT_FUTURE
        if self.unit is ExpiryUnit.INSTANT:
            assert self.instant is not None  # enforced by _check_shape
            return as_utc(self.instant)

        now = as_utc(now)
        try:
            if self.unit in _FIXED_UNITS:
                return now + timedelta(seconds=self.amount * _FIXED_UNITS[self.unit])
            months = int(self.amount) * (12 if self.unit is ExpiryUnit.YEARS else 1)
            return _add_months(now, months)
        except (OverflowError, ValueError):
            if self.amount < 0:
                return datetime.min.replace(tzinfo=DISTANT_FUTURE.tzinfo)
            return DISTANT_FUTURE


def _add_months(start: datetime, months: int) -> datetime:
    """Shift *start* by whole calendar months, clamping the day to the month's length."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)
