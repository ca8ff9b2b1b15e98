"""
analytics/time_window.py

Resolution of a symbolic dashboard range into absolute time windows.

Range table
-----------
=========  ==============================  =======  ===========
label      current window                  buckets  bucket unit
=========  ==============================  =======  ===========
today      start of day (UTC) → now        24       hour
week       trailing 7 days                 7        day
month      trailing 1 calendar month       30       day
year       trailing 1 calendar year        12       month
=========  ==============================  =======  ===========

The comparison window always has the same duration as the current window and
ends exactly where the current one starts. All windows are half-open
``[start, end)``.

Buckets are calendar-aligned (top of the hour, midnight, first of the month)
and the newest bucket is the one containing ``now``, so its end boundary may
lie slightly in the future.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


class TimeRange(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class BucketUnit(str, Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


DEFAULT_TIME_RANGE = TimeRange.WEEK

_BUCKETS: dict[TimeRange, tuple[int, BucketUnit]] = {
    TimeRange.TODAY: (24, BucketUnit.HOUR),
    TimeRange.WEEK: (7, BucketUnit.DAY),
    TimeRange.MONTH: (30, BucketUnit.DAY),
    TimeRange.YEAR: (12, BucketUnit.MONTH),
}


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True)
class Bucket:
    start: datetime
    end: datetime
    label: str


@dataclass(frozen=True)
class ResolvedWindow:
    time_range: TimeRange
    current: TimeWindow
    previous: TimeWindow
    bucket_count: int
    bucket_unit: BucketUnit

    def buckets(self) -> list[Bucket]:
        """Return ``bucket_count`` buckets, oldest first, the last one containing ``current.end``."""
        anchor = _floor(self.current.end, self.bucket_unit)
        result: list[Bucket] = []
        for offset in range(self.bucket_count - 1, -1, -1):
            start = _shift(anchor, self.bucket_unit, -offset)
            end = _shift(start, self.bucket_unit, 1)
            result.append(Bucket(start=start, end=end, label=_label(start, self.bucket_unit)))
        return result


def parse_time_range(label: str | None) -> TimeRange:
    """
    Map a request label to a :class:`TimeRange`.

    Unknown or missing labels fall back to ``week`` instead of being rejected.
    """
    if label is None:
        return DEFAULT_TIME_RANGE
    try:
        return TimeRange(label.strip().lower())
    except ValueError:
        logger.warning("Unknown time range %r, defaulting to %s", label, DEFAULT_TIME_RANGE.value)
        return DEFAULT_TIME_RANGE


def resolve_time_window(label: str | TimeRange | None, *, now: datetime | None = None) -> ResolvedWindow:
    time_range = label if isinstance(label, TimeRange) else parse_time_range(label)
    now = now or datetime.now(timezone.utc)

    if time_range is TimeRange.TODAY:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif time_range is TimeRange.WEEK:
        start = now - timedelta(days=7)
    elif time_range is TimeRange.MONTH:
        start = now - relativedelta(months=1)
    else:
        start = now - relativedelta(years=1)

    current = TimeWindow(start=start, end=now)
    previous = TimeWindow(start=start - current.duration, end=start)
    bucket_count, bucket_unit = _BUCKETS[time_range]
    return ResolvedWindow(
        time_range=time_range,
        current=current,
        previous=previous,
        bucket_count=bucket_count,
        bucket_unit=bucket_unit,
    )


def _floor(moment: datetime, unit: BucketUnit) -> datetime:
    if unit is BucketUnit.HOUR:
        return moment.replace(minute=0, second=0, microsecond=0)
    if unit is BucketUnit.DAY:
        return moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _shift(moment: datetime, unit: BucketUnit, steps: int) -> datetime:
    if unit is BucketUnit.HOUR:
        return moment + timedelta(hours=steps)
    if unit is BucketUnit.DAY:
        return moment + timedelta(days=steps)
    return moment + relativedelta(months=steps)


def _label(start: datetime, unit: BucketUnit) -> str:
    if unit is BucketUnit.HOUR:
        return f"{start.hour}:00"
    if unit is BucketUnit.DAY:
        return f"{start:%b} {start.day}"
    return f"{start:%b}"
