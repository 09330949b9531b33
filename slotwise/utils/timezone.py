# slotwise/utils/timezone.py
"""
Time zone helpers.

All scheduling maths runs on UTC instants; local wall-clock values only appear
at the edges (schedule rules, requested days, rendered slots). Conversions go
through pytz ``localize`` so that DST transitions produce the right offsets.
"""
from datetime import date, datetime, time, timedelta
from typing import Iterator, Tuple

import pytz

from slotwise.core.exceptions import ValidationError


def get_timezone(tz_name: str):
    """Resolve an IANA time zone name or raise ValidationError"""
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone: {tz_name}")


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def localize(day: date, wall_time: time, tz) -> datetime:
    """
    Attach a zone to a local wall-clock value.

    Ambiguous times (fall back) resolve to the first, daylight-time occurrence;
    times in a spring-forward gap are shifted forward by the gap.
    """
    naive = datetime.combine(day, wall_time)
    try:
        return tz.localize(naive, is_dst=None)
    except pytz.AmbiguousTimeError:
        return tz.localize(naive, is_dst=True)
    except pytz.NonExistentTimeError:
        return tz.normalize(tz.localize(naive, is_dst=False))


def day_of_week(day: date) -> int:
    """Weekday number used by schedules: 0=Sunday .. 6=Saturday"""
    return day.isoweekday() % 7


def wall_time_to_utc(day: date, wall_time: time, tz) -> datetime:
    return localize(day, wall_time, tz).astimezone(pytz.UTC)


def local_day_bounds_utc(day: date, tz) -> Tuple[datetime, datetime]:
    """UTC instants of local midnight on ``day`` and on the following day"""
    start = wall_time_to_utc(day, time.min, tz)
    end = wall_time_to_utc(day + timedelta(days=1), time.min, tz)
    return start, end


def local_range_bounds_utc(start_day: date, end_day: date, tz) -> Tuple[datetime, datetime]:
    """UTC window covering local days start_day..end_day inclusive"""
    start, _ = local_day_bounds_utc(start_day, tz)
    _, end = local_day_bounds_utc(end_day, tz)
    return start, end


def ensure_utc(value: datetime, tz=None) -> datetime:
    """Convert to UTC; naive values are interpreted in ``tz`` (UTC when omitted)"""
    if value.tzinfo is None:
        return localize(value.date(), value.time(), tz or pytz.UTC).astimezone(pytz.UTC)
    return value.astimezone(pytz.UTC)


def to_local(value: datetime, tz) -> datetime:
    return ensure_utc(value).astimezone(tz)


def local_date(value: datetime, tz) -> date:
    return to_local(value, tz).date()


def iter_days(start_day: date, end_day: date) -> Iterator[date]:
    current = start_day
    while current <= end_day:
        yield current
        current += timedelta(days=1)


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD"""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_wall_time(value: str) -> time:
    """Parse HH:MM (24h)"""
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")


def parse_instant(value) -> datetime:
    """Parse an ISO-8601 datetime string; datetimes pass through unchanged"""
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"Invalid datetime '{value}', expected ISO-8601")
