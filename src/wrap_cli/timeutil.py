from __future__ import annotations

from datetime import date, datetime, timezone
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "UTC"

_HOUR_PATTERN = re.compile(r"^(\d{1,2})(?::([0-5]\d))?$")


def parse_date_ymd(s: str) -> date:
    """Parse strict YYYY-MM-DD string into a date. Raises ValueError."""
    return datetime.strptime(s, "%Y-%m-%d").date()


def parse_hour(s: str) -> float:
    """Parse '9', '9.5' or '9:30' into decimal hours. Raises ValueError."""
    value = s.strip()
    match = _HOUR_PATTERN.fullmatch(value)
    if match is not None:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        return hours + minutes / 60
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Invalid hour '{s}'. Expected H, H.5 or HH:MM.") from exc


def effective_timezone_name(name: str | None) -> str:
    """Blank or missing timezone names fall back to UTC."""
    if name is None or not name.strip():
        return DEFAULT_TIMEZONE
    return name.strip()


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Resolve an IANA name to a ZoneInfo. Raises ValueError for unknown names."""
    tz_name = effective_timezone_name(name)
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid timezone '{tz_name}'. Expected a valid IANA timezone.") from exc


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now(now: datetime, tz_name: str | None) -> datetime:
    if now.tzinfo is None:
        raise ValueError("local_now requires a tz-aware datetime")
    return now.astimezone(resolve_timezone(tz_name))


def local_today(now: datetime, tz_name: str | None) -> date:
    return local_now(now, tz_name).date()


def format_hour(hour: float | None) -> str | None:
    """Render decimal hours as a clock label: 0 -> 12am, 9.5 -> 9:30am, 13 -> 1pm."""
    if hour is None:
        return None
    h = int(hour)
    m = int(round((hour - h) * 60, 6))
    period = "pm" if 12 <= h < 24 else "am"
    if h in (0, 24):
        display_hour = 12
    elif h <= 12:
        display_hour = h
    else:
        display_hour = h - 12
    if m == 0:
        return f"{display_hour}{period}"
    return f"{display_hour}:{m:02d}{period}"


def format_hours(hours: float) -> str:
    """Render a duration: 2.0 -> '2h', 1.5 -> '1.5h'."""
    value = float(hours)
    if value == int(value):
        return f"{int(value)}h"
    return f"{value}h"
