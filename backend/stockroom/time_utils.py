from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical). Every movement is stamped with this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD"; None / "" -> None. Raises ValueError on garbage."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Stored UTC-naive timestamps -> "YYYY-MM-DDTHH:MM:SSZ"."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def local_today(tz_name: str = "UTC") -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def day_range(start: date, end: date, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """
    Inclusive UTC-naive bounds covering [start 00:00:00, end 23:59:59.999999]
    in the given zone.
    """
    tz = ZoneInfo(tz_name)
    start_local = datetime.combine(start, time.min, tzinfo=tz)
    end_local = datetime.combine(end, time.max, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def today_range(tz_name: str = "UTC", today: date | None = None) -> tuple[datetime, datetime]:
    today = today or local_today(tz_name)
    return day_range(today, today, tz_name)


def current_month_range(tz_name: str = "UTC", today: date | None = None) -> tuple[datetime, datetime]:
    """First through last calendar day of the month containing `today`."""
    today = today or local_today(tz_name)
    first = today.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    last = next_month - timedelta(days=1)
    return day_range(first, last, tz_name)
