"""
Time-based housekeeping, as pure planners.

Each planner takes the current collection and the current time and returns
the ids that need a transition; the orchestrator applies them and the
periodic runner decides when to ask.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from todoapp.constants import COMPLETED_TTL, TASK_STATUS_COMPLETED, TASK_STATUS_SNOOZED
from todoapp.domain.tasks.models import Task


def due_snooze_expiries(tasks: Iterable[Task], now: datetime) -> list[str]:
    return [
        t.id
        for t in tasks
        if t.status == TASK_STATUS_SNOOZED and t.snoozed_until is not None and t.snoozed_until <= now
    ]


def due_completed_expiries(tasks: Iterable[Task], now: datetime, ttl: timedelta = COMPLETED_TTL) -> list[str]:
    cutoff = now - ttl
    return [
        t.id
        for t in tasks
        if t.status == TASK_STATUS_COMPLETED and t.completed_at is not None and t.completed_at < cutoff
    ]


def time_until_deletion(completed_at: datetime, now: datetime, ttl: timedelta = COMPLETED_TTL) -> timedelta:
    return completed_at + ttl - now
