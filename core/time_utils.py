from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_today(tz_name: str = "UTC") -> date:
    return now_utc().astimezone(ZoneInfo(tz_name)).date()


def local_date(dt: datetime, tz_name: str = "UTC") -> date:
    """Calendar day of `dt` in the clinic timezone."""
    return as_utc(dt).astimezone(ZoneInfo(tz_name)).date()
