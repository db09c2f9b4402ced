from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt


def to_iso(dt: datetime) -> str:
    ensure_aware(dt)
    # store as ISO 8601 in UTC
    return dt.astimezone(timezone.utc).isoformat()


def from_iso(s: str) -> datetime:
    # older interpreters reject the trailing Z
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_optional(value) -> Optional[datetime]:
    """Accept None, an aware datetime or an ISO string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return from_iso(str(value))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
