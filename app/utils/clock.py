# app/utils/clock.py
"""
Wall-clock helpers.

All timestamps in the database are naive UTC (datetime.utcnow()).
Hour thresholds and the calendar day used in alert identifiers are
evaluated in one configured zone (ENGINE_TIMEZONE), never per project.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo


def resolve_timezone(name: str) -> tzinfo:
    """Raises ZoneInfoNotFoundError / ValueError for unknown zones."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def to_local(now_utc: datetime, tz: tzinfo) -> datetime:
    """Naive UTC → aware local time in tz."""
    return now_utc.replace(tzinfo=timezone.utc).astimezone(tz)


def local_day(now_utc: datetime, tz: tzinfo) -> date:
    return to_local(now_utc, tz).date()


def start_of_local_day(now_utc: datetime, tz: tzinfo) -> datetime:
    """Midnight of the local calendar day, returned as naive UTC."""
    midnight = datetime.combine(local_day(now_utc, tz), time.min, tzinfo=tz)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start) / timedelta(hours=1)
