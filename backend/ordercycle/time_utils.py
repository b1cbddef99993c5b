from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_BUSINESS_TIMEZONE = "Asia/Seoul"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    - anything unparseable -> None
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def business_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    if tz_name is None and has_app_context():
        tz_name = current_app.config.get("BUSINESS_TIMEZONE")
    return ZoneInfo(tz_name or DEFAULT_BUSINESS_TIMEZONE)


def to_business_time(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a UTC-naive datetime to an aware datetime in the business zone."""
    return dt.replace(tzinfo=timezone.utc).astimezone(business_zone(tz_name))


def business_today_start(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> datetime:
    """
    Midnight of the current business day, returned as UTC-naive.

    Used as the fallback lower bound when no cycle or window record exists.
    """
    local = to_business_time(now or utcnow(), tz_name)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def business_date_code(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> str:
    """YYMMDD of the business day containing `now`."""
    return to_business_time(now or utcnow(), tz_name).strftime("%y%m%d")
