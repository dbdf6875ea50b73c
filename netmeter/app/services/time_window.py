"""Resolution of ``(period, count)`` selectors into concrete time windows."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from enum import StrEnum
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from netmeter.app.core.config import settings
from netmeter.app.core.errors import InvalidCountError, InvalidPeriodError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class Period(StrEnum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: Any) -> "Period":
        if isinstance(value, Period):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidPeriodError("Allowed values: hour, day, week, month")


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start_ms, end_ms)`` interval in milliseconds since epoch."""

    start_ms: int
    end_ms: int

    def __post_init__(self) -> None:
        if self.start_ms >= self.end_ms:
            raise ValueError(f"Window start must precede end ({self.start_ms} >= {self.end_ms})")

    @classmethod
    def from_datetimes(cls, start: datetime, end: datetime) -> "TimeWindow":
        return cls(start_ms=to_millis(start), end_ms=to_millis(end))

    @property
    def start(self) -> datetime:
        return EPOCH + self.start_ms * _ONE_MS

    @property
    def end(self) -> datetime:
        return EPOCH + self.end_ms * _ONE_MS

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def contains(self, ts_ms: int) -> bool:
        return self.start_ms <= ts_ms < self.end_ms

    def overlaps(self, start_ms: int, end_ms: int) -> bool:
        return start_ms < self.end_ms and end_ms > self.start_ms


def to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        raise ValueError("Naive datetimes cannot be converted to epoch milliseconds")
    return (moment - EPOCH) // _ONE_MS


def local_timezone(name: Optional[str] = None) -> tzinfo:
    """
    Timezone used for hour/midnight alignment.

    Explicit ``name`` wins, then ``NETMETER_TIMEZONE``, then the host's zone.
    """
    zone_name = name or settings.timezone
    if zone_name:
        try:
            return ZoneInfo(zone_name)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown timezone: {zone_name}") from exc
    return datetime.now().astimezone().tzinfo


def count_bounds(period: Period, month_max_count: Optional[int] = None) -> tuple[int, int]:
    if period is Period.HOUR:
        return 1, 1
    if period is Period.DAY:
        return 1, 7
    if period is Period.WEEK:
        return 1, 4
    return 1, month_max_count if month_max_count is not None else settings.month_max_count


def validate_count(period: Period, count: Any, month_max_count: Optional[int] = None) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidCountError("Count must be an integer")

    low, high = count_bounds(period, month_max_count)
    if low == high and count != low:
        raise InvalidCountError(f"Count must be {low} for {period.value} period")
    if not low <= count <= high:
        raise InvalidCountError(f"Count must be between {low} and {high}")
    return count


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _shift_months(moment: datetime, months: int) -> datetime:
    # Calendar semantics: the day clamps to the target month's length.
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_window(
    period: Any,
    count: Any,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    month_max_count: Optional[int] = None,
) -> TimeWindow:
    """
    Turn a ``(period, count)`` selector into a ``[start, end)`` window ending now.

    - hour: start of the current clock hour.
    - day: midnight of the day ``count - 1`` days before today.
    - week: ``count`` weeks before now, keeping the time of day.
    - month: ``count`` calendar months before now, keeping the time of day.

    Only day and hour are aligned; week and month windows start at the current
    time of day. Validation happens before any clock read.
    """
    period = Period.parse(period)
    count = validate_count(period, count, month_max_count)

    zone = tz or local_timezone()
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    else:
        now = now.astimezone(zone)

    end_ms = to_millis(now)

    if period is Period.HOUR:
        start = now.replace(minute=0, second=0, microsecond=0)
        if to_millis(start) >= end_ms:
            # Exactly on the hour: report the hour that just ended.
            return TimeWindow(start_ms=end_ms - 3_600_000, end_ms=end_ms)
    elif period is Period.DAY:
        start = _midnight(now - timedelta(days=count - 1))
        if to_millis(start) >= end_ms:
            start = _midnight(start - timedelta(days=1))
    elif period is Period.WEEK:
        start = now - timedelta(weeks=count)
    else:
        start = _shift_months(now, -count)

    return TimeWindow(start_ms=to_millis(start), end_ms=end_ms)
