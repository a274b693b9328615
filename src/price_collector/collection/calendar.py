"""Reference-timezone day arithmetic.

Every day boundary in the collection pipeline goes through these helpers so
that "yesterday" and "the whole of a day" always mean the same thing in the
configured timezone (Asia/Tokyo by default), never the host's local time.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

_DAY_START = time(0, 0, 0)
_DAY_END = time(23, 59, 59)


def _aware_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")
    return now


def reference_today(tz: tzinfo, now: datetime | None = None) -> date:
    return _aware_now(now).astimezone(tz).date()


def reference_yesterday(tz: tzinfo, now: datetime | None = None) -> date:
    return reference_today(tz, now) - timedelta(days=1)


def trailing_days(tz: tzinfo, days: int, now: datetime | None = None) -> list[date]:
    """Yesterday first, then walking back one day at a time."""
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")
    yesterday = reference_yesterday(tz, now)
    return [yesterday - timedelta(days=i) for i in range(days)]


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """First and last second of ``day`` in ``tz``: [00:00:00, 23:59:59]."""
    return (
        datetime.combine(day, _DAY_START, tzinfo=tz),
        datetime.combine(day, _DAY_END, tzinfo=tz),
    )
