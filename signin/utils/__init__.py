"""Utility modules for the application."""

from signin.utils.timezone import (
    utc_now,
    ensure_utc,
    to_unix,
    format_http_date
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "to_unix",
    "format_http_date"
]
