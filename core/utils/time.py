"""
Time Utilities

This module provides the timezone helpers shared by the pair catalog and the
recurring scheduler.

Providers and schedules talk in different clocks:
- MOEX reports session times (UPDATETIME, TRADEDATE) in Moscow wall-clock time
- The broadcast schedule is anchored to a named timezone, not the host's
- Internally we keep timezone-aware UTC datetimes

Everything here returns timezone-aware datetimes; naive datetimes are
treated as UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.errors import ConfigError


TIME_FORMATS = ("%H:%M:%S", "%H:%M")


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime, leave aware ones untouched."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_time_of_day(value: str) -> time:
    """
    Parse a wall-clock time string.

    Args:
        value: "HH:MM:SS" or "HH:MM"

    Returns:
        datetime.time

    Raises:
        ConfigError: If the string is not a valid time of day

    Examples:
        >>> parse_time_of_day("11:00:00")
        datetime.time(11, 0)
        >>> parse_time_of_day("09:30")
        datetime.time(9, 30)
    """
    text = value.strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ConfigError(f"Invalid time of day: '{value}'. Expected HH:MM:SS or HH:MM")


def parse_zone(zone_id: str) -> ZoneInfo:
    """
    Resolve an IANA timezone name.

    Raises:
        ConfigError: If the zone is unknown or the name is malformed

    Example:
        >>> parse_zone("Europe/Moscow")
        zoneinfo.ZoneInfo(key='Europe/Moscow')
    """
    try:
        return ZoneInfo(zone_id.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone: '{zone_id}'") from e


def today_in_zone(zone: ZoneInfo, now: Optional[datetime] = None) -> date:
    """
    Calendar date in the given zone.

    Args:
        zone: Target timezone
        now: Reference instant (defaults to the current time)
    """
    now = ensure_aware(now) if now is not None else current_utc_datetime()
    return now.astimezone(zone).date()


def trailing_window(zone: ZoneInfo, days: int, now: Optional[datetime] = None) -> Tuple[date, date]:
    """
    Inclusive date range covering the `days` calendar days before today.

    The window ends yesterday (in `zone`) and starts `days` days ago, so a
    7-day window always contains at least one trading day even across long
    holiday runs.

    Example:
        >>> trailing_window(ZoneInfo("Europe/Moscow"), 7, datetime(2023, 6, 16, 9, tzinfo=timezone.utc))
        (datetime.date(2023, 6, 9), datetime.date(2023, 6, 15))
    """
    today = today_in_zone(zone, now)
    return today - timedelta(days=days), today - timedelta(days=1)


def combine_in_zone(day: date, time_of_day: time, zone: ZoneInfo) -> datetime:
    """Aware datetime for a local wall-clock time on a given date."""
    return datetime.combine(day, time_of_day, tzinfo=zone)
