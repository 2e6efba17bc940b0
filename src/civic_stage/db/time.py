"""Time utilities shared by the store, identity provider and dispatcher."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Return the current time as epoch milliseconds."""
    return int(utcnow().timestamp() * 1000)
