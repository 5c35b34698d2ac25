from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from oralpractice.core.config import settings


@lru_cache()
def app_zone() -> ZoneInfo:
    return ZoneInfo(settings.APP_TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_date(dt: datetime) -> date:
    """Calendar day of `dt` in APP_TIMEZONE."""
    return as_utc(dt).astimezone(app_zone()).date()


def today() -> date:
    return local_date(utcnow())


def day_range_utc(start: date, end: date) -> tuple[datetime, datetime]:
    """
    Half-open UTC interval [start 00:00, end+1 00:00) covering the
    inclusive local calendar range start..end.
    """
    zone = app_zone()
    lo = datetime.combine(start, time.min, tzinfo=zone)
    hi = datetime.combine(end + timedelta(days=1), time.min, tzinfo=zone)
    return lo.astimezone(timezone.utc), hi.astimezone(timezone.utc)
