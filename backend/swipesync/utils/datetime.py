"""
Centralized UTC time helpers for SwipeSync.

Daily task keys roll over at UTC midnight, contract deadlines are unix
seconds and price points are unix milliseconds; all of it goes through here
so tests can pin "now".
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def unix_seconds(now: Optional[datetime] = None) -> int:
    """Unix timestamp in seconds."""
    return int((now or utc_now()).timestamp())


def unix_millis(now: Optional[datetime] = None) -> int:
    """Unix timestamp in milliseconds (price history points)."""
    return int((now or utc_now()).timestamp() * 1000)


def utc_day(now: Optional[datetime] = None) -> str:
    """UTC calendar day as YYYY-MM-DD."""
    return (now or utc_now()).strftime("%Y-%m-%d")


def seconds_until_utc_midnight(now: Optional[datetime] = None) -> int:
    """
    Seconds left until the next UTC midnight.

    Never returns less than 1 so it is always a valid key TTL.

    Examples:
        >>> seconds_until_utc_midnight(datetime(2025, 1, 1, 23, 59, 30, tzinfo=timezone.utc))
        30
    """
    now = now or utc_now()
    midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, int((midnight - now).total_seconds()))


def isoformat(now: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp with a trailing Z."""
    return (now or utc_now()).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
