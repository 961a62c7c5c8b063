"""
Timezone utilities.

Timestamps are stored and compared in UTC. SQLite hands back naive
datetimes even for timezone-aware columns, so naive values are treated
as UTC everywhere.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to a naive datetime, or convert an aware one to UTC.

    Args:
        dt: A datetime object (naive assumed UTC, or timezone-aware)

    Returns:
        Timezone-aware datetime in UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_unix(dt: datetime) -> int:
    """Seconds since the epoch, naive values read as UTC."""
    return int(ensure_utc(dt).timestamp())


def format_http_date(dt: datetime) -> str:
    """RFC 7231 date for Last-Modified headers."""
    return ensure_utc(dt).strftime("%a, %d %b %Y %H:%M:%S GMT")
