"""
Mapping between stored rows and the UI-facing Task.

Rows reach the client in the wire shape of `TodoRecord.as_dict()`; older
payloads may use `is_complete` and camelCase timestamps. `to_task` accepts
either, or a Task, and is idempotent: `to_task(to_task(r)) == to_task(r)`.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from todoapp.constants import (
    DEFAULT_PRIORITY,
    PRIORITIES,
    TASK_STATUS_ACTIVE,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_SNOOZED,
)
from todoapp.domain.common.time import parse_optional, utc_now
from todoapp.domain.tasks.models import Task


def normalize_identifier(raw: Optional[str]) -> str:
    return (raw or "").strip().lower()


def _first(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def task_as_row(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "owner_identifier": task.owner_identifier,
        "description": task.description,
        "project": task.project,
        "tags": list(task.tags),
        "priority": task.priority,
        "status": task.status,
        "completed": task.completed,
        "completed_at": task.completed_at,
        "snoozed_until": task.snoozed_until,
        "enhanced_description": task.enhanced_description,
        "steps": list(task.steps) if task.steps is not None else None,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


def to_task(row: Union[Mapping[str, Any], Task], now: Optional[datetime] = None) -> Task:
    if isinstance(row, Task):
        row = task_as_row(row)

    stamp = now or utc_now()
    completed = bool(_first(row, "completed", "is_complete") or False)

    raw_updated = parse_optional(_first(row, "updated_at", "updatedAt"))
    created_at = parse_optional(_first(row, "created_at", "createdAt")) or raw_updated or stamp
    updated_at = raw_updated or created_at

    if completed:
        status = TASK_STATUS_COMPLETED
    elif row.get("status") == TASK_STATUS_SNOOZED:
        status = TASK_STATUS_SNOOZED
    else:
        status = TASK_STATUS_ACTIVE

    completed_at = None
    if completed:
        completed_at = parse_optional(_first(row, "completed_at", "completedAt")) or raw_updated or stamp

    snoozed_until = None
    if status == TASK_STATUS_SNOOZED:
        snoozed_until = parse_optional(_first(row, "snoozed_until", "snoozedUntil"))

    priority = row.get("priority")
    if priority not in PRIORITIES:
        priority = DEFAULT_PRIORITY

    steps = row.get("steps")

    return Task(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        owner_identifier=str(_first(row, "owner_identifier", "identifier_raw", "identifier_norm") or ""),
        priority=priority,
        status=status,
        completed=completed,
        created_at=created_at,
        updated_at=updated_at,
        description=row.get("description"),
        project=row.get("project"),
        tags=tuple(row.get("tags") or ()),
        completed_at=completed_at,
        snoozed_until=snoozed_until,
        enhanced_description=row.get("enhanced_description"),
        steps=tuple(steps) if steps is not None else None,
    )


def create_payload(task: Task) -> Dict[str, Any]:
    """Fields used to re-create a deleted task. The store assigns a new id."""
    return {
        "title": task.title,
        "description": task.description,
        "project": task.project,
        "tags": list(task.tags),
        "priority": task.priority,
    }
