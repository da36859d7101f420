"""ISO 8601 timestamp helpers.

Timestamps live in the graph document as strings. They are written in UTC
with millisecond precision and a ``Z`` suffix, and parsed with
``dateutil.parser.isoparse``. Values without an offset are taken as UTC.
"""

from datetime import datetime, timezone

from dateutil import parser as dateutil_parser

SECONDS_PER_DAY = 86400.0


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime.

    Raises:
        ValueError: if ``value`` is not a valid ISO 8601 timestamp
    """
    try:
        dt = dateutil_parser.isoparse(value)
    except (TypeError, OverflowError) as e:
        raise ValueError(f"Invalid ISO 8601 timestamp: {value!r}") from e
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Format a datetime as UTC ISO 8601 (``2026-01-01T00:00:00.000Z``)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    """Wall-clock time. Only the service layer calls this, once per request."""
    return datetime.now(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier).total_seconds() / SECONDS_PER_DAY
