"""Helpers for converting between epoch milliseconds and datetimes"""
import math
from datetime import datetime, timezone


def ms_to_datetime(ms: float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime"""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def datetime_to_ms(dt: datetime) -> float:
    """
    Convert a datetime to epoch milliseconds.

    Naive datetimes are interpreted as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000


def elapsed_seconds(start: datetime, now_ms: float) -> int:
    """Whole seconds between start and now_ms, never negative"""
    return max(0, math.floor((now_ms - datetime_to_ms(start)) / 1000))


def format_time(seconds: int) -> str:
    """
    Format a second count for display.

    Returns:
        str: "MM:SS", or "HH:MM:SS" once an hour has passed
    """
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
