from __future__ import annotations

from datetime import datetime, timedelta

from todoapp.constants import COMPLETED_TTL, PRIORITY_LABELS
from todoapp.domain.tasks.sweeps import time_until_deletion


def format_time_until_deletion(completed_at: datetime, now: datetime, ttl: timedelta = COMPLETED_TTL) -> str:
    remaining = time_until_deletion(completed_at, now, ttl)
    if remaining <= timedelta(0):
        return "Deleting soon..."
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    return f"{minutes}m remaining"


def relative_time(then: datetime, now: datetime) -> str:
    seconds = int((now - then).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def priority_label(priority: str) -> str:
    return PRIORITY_LABELS.get(priority, priority)
