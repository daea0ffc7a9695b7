from __future__ import annotations
from datetime import datetime, timedelta, UTC
from typing import Optional

__all__ = ["utc_now", "db_now", "ensure_aware_utc", "to_naive_utc", "days_from", "iso_utc"]

def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)

def db_now() -> datetime:
    """Naive UTC now, comparable with the naive DateTime columns we store."""
    return to_naive_utc(utc_now())

def ensure_aware_utc(dt: datetime | None) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware in UTC (assumes naive input already in UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

def to_naive_utc(dt: datetime | None) -> Optional[datetime]:
    """Convert aware datetime to naive UTC for storage/compare; pass through naive assumed UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)

def days_from(base: datetime, days: float) -> datetime:
    return base + timedelta(days=days)

def iso_utc(dt: datetime | None) -> Optional[str]:
    """ISO 8601 with an explicit UTC offset, used in stored payloads."""
    aware = ensure_aware_utc(dt)
    return aware.isoformat() if aware else None
