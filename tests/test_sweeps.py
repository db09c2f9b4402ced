"""
Sweep planners and the completed-task countdown text.

Run with: python -m pytest tests/test_sweeps.py -v
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from todoapp.domain.tasks.models import Task
from todoapp.domain.tasks.sweeps import due_completed_expiries, due_snooze_expiries
from todoapp.utils import format_time_until_deletion, relative_time

NOW = datetime(2024, 5, 3, 12, 0, tzinfo=timezone.utc)


def _task(task_id, status, completed_at=None, snoozed_until=None):
    return Task(
        id=task_id,
        title=task_id,
        owner_identifier="alice",
        priority="P2",
        status=status,
        completed=status == "completed",
        created_at=NOW - timedelta(days=5),
        updated_at=NOW - timedelta(days=5),
        completed_at=completed_at,
        snoozed_until=snoozed_until,
    )


def test_due_snooze_expiries_includes_deadline_equal_to_now():
    tasks = [
        _task("past", "snoozed", snoozed_until=NOW - timedelta(minutes=1)),
        _task("exact", "snoozed", snoozed_until=NOW),
        _task("future", "snoozed", snoozed_until=NOW + timedelta(seconds=1)),
        _task("active", "active"),
    ]
    assert due_snooze_expiries(tasks, NOW) == ["past", "exact"]


def test_due_completed_expiries_is_strictly_older_than_48h():
    tasks = [
        _task("old", "completed", completed_at=NOW - timedelta(hours=48, seconds=1)),
        _task("edge", "completed", completed_at=NOW - timedelta(hours=48)),
        _task("fresh", "completed", completed_at=NOW - timedelta(hours=1)),
        _task("active", "active"),
    ]
    assert due_completed_expiries(tasks, NOW) == ["old"]


def test_time_until_deletion_text():
    completed = NOW - timedelta(hours=46, minutes=30)
    assert format_time_until_deletion(completed, NOW) == "1h 30m remaining"
    assert format_time_until_deletion(NOW - timedelta(hours=47, minutes=15), NOW) == "45m remaining"
    assert format_time_until_deletion(NOW - timedelta(hours=49), NOW) == "Deleting soon..."


def test_relative_time():
    assert relative_time(NOW - timedelta(seconds=10), NOW) == "just now"
    assert relative_time(NOW - timedelta(minutes=5), NOW) == "5m ago"
    assert relative_time(NOW - timedelta(hours=3), NOW) == "3h ago"
    assert relative_time(NOW - timedelta(days=2), NOW) == "2d ago"
