"""Temporal calendar helpers

Pure functions only. All dates are handled at UTC day granularity: datetimes
are converted to UTC (when aware) and their time-of-day is dropped.
"""
import calendar
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple, Union

DateLike = Union[date, datetime, str]

WEEKDAY_NAMES = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
)

# (start_month, start_day, end_month, end_day), inclusive; a start after the end wraps the year
HOLIDAY_WINDOWS: Tuple[Tuple[int, int, int, int], ...] = (
    (12, 15, 1, 7),
    (7, 1, 7, 31),
    (3, 15, 3, 31),
)


def to_date(value: DateLike) -> date:
    """Truncate a date, datetime or ISO string to a UTC calendar date"""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise ValueError(f"Cannot interpret {value!r} as a date")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return utc_now().date()


def start_of_day(value: DateLike) -> datetime:
    """Midnight UTC of the given day"""
    d = to_date(value)
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def nights_between(check_in: DateLike, check_out: DateLike) -> List[date]:
    """Every occupied night of the stay [check_in, check_out)"""
    start = to_date(check_in)
    end = to_date(check_out)
    return [start + timedelta(days=offset) for offset in range((end - start).days)]


def night_count(check_in: DateLike, check_out: DateLike) -> int:
    return max(0, (to_date(check_out) - to_date(check_in)).days)


def day_of_week(value: DateLike) -> str:
    return WEEKDAY_NAMES[to_date(value).weekday()]


def is_weekend(value: DateLike) -> bool:
    return to_date(value).weekday() >= 5


def is_in_range(value: DateLike, start: DateLike, end: DateLike) -> bool:
    """Inclusive range check"""
    return to_date(start) <= to_date(value) <= to_date(end)


def is_holiday(value: DateLike) -> bool:
    d = to_date(value)
    key = (d.month, d.day)
    for start_month, start_day, end_month, end_day in HOLIDAY_WINDOWS:
        start_key = (start_month, start_day)
        end_key = (end_month, end_day)
        if start_key <= end_key:
            if start_key <= key <= end_key:
                return True
        elif key >= start_key or key <= end_key:
            return True
    return False


def lead_time_hours(check_in: DateLike, now: Optional[datetime] = None) -> float:
    """Hours between now and midnight UTC of the arrival day"""
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (start_of_day(check_in) - now).total_seconds() / 3600


def lead_time_days(check_in: DateLike, now: Optional[datetime] = None) -> float:
    return lead_time_hours(check_in, now) / 24


def month_range(year: int, month: int) -> Tuple[date, date]:
    """First day of the month and first day of the following month"""
    last_day = calendar.monthrange(year, month)[1]
    first = date(year, month, 1)
    return first, first + timedelta(days=last_day)


def add_days(value: DateLike, days: int) -> date:
    return to_date(value) + timedelta(days=days)
