"""
UTC time helpers.

Timestamps are stored as naive UTC datetimes. Values arriving from callers
may be timezone-aware; they are normalised here before they reach the
database.
"""

from datetime import datetime
import pytz


def utcnow():
    """Current time as a naive UTC datetime."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def to_utc_naive(value):
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.UTC).replace(tzinfo=None)


def parse_timestamp(value):
    """
    Parse an ISO-8601 timestamp (as sent by the dashboard) into naive UTC.

    A trailing ``Z`` is accepted. Raises ValueError for unparseable input.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return to_utc_naive(datetime.fromisoformat(text))


def isoformat(value):
    return value.isoformat() if value else None
