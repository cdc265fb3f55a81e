"""
Time helpers.

Engine functions never read the clock themselves; callers pass ``now`` in.
``utcnow()`` exists for the outer layers (CLI, pipeline stages) that need
to pick that value.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def age_in_days(created_at: datetime, now: datetime) -> float:
    """Fractional days between ``created_at`` and ``now`` (never negative)."""
    delta = ensure_utc(now) - ensure_utc(created_at)
    return max(0.0, delta.total_seconds() / 86_400.0)


def window_start(now: datetime, days: int) -> datetime:
    """Start of a trailing window of ``days`` ending at ``now``."""
    return ensure_utc(now) - timedelta(days=days)


def to_iso(value: datetime) -> str:
    """Serialise a datetime as an ISO-8601 UTC string for SQLite storage."""
    return ensure_utc(value).isoformat()


def from_iso(value: str) -> datetime:
    """Parse an ISO-8601 string written by ``to_iso`` (or a naive one)."""
    return ensure_utc(datetime.fromisoformat(value))
