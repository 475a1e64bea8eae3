"""
Datetime utility functions.
"""

from datetime import datetime, date
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    """Serialize an optional timestamp column."""
    return value.isoformat() if value else None


def normalize_session_date(date_input: Union[str, date]) -> str:
    """
    Normalize a session date to ISO format (YYYY-MM-DD).

    Accepts ISO strings, US style "M/D/YYYY" strings and date objects.

    Raises:
        ValueError: If the input cannot be parsed as a date

    Examples:
        >>> normalize_session_date("2026-01-21")
        "2026-01-21"
        >>> normalize_session_date("1/21/2026")
        "2026-01-21"
    """
    if isinstance(date_input, datetime):
        return date_input.date().isoformat()
    if isinstance(date_input, date):
        return date_input.isoformat()

    date_str = str(date_input).strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(date_str, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValueError(f"Invalid date '{date_input}'. Use YYYY-MM-DD")


def normalize_clock_time(time_input: Optional[str]) -> Optional[str]:
    """
    Normalize a wall-clock time to HH:MM (24h).

    Returns None for empty input.

    Raises:
        ValueError: If the input is not a valid time
    """
    if time_input is None or not str(time_input).strip():
        return None
    time_str = str(time_input).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(time_str, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValueError(f"Invalid time '{time_input}'. Use HH:MM")
