from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Literal, Optional, Tuple

from todoapp.domain.common.time import to_iso

Priority = Literal["P0", "P1", "P2", "P3"]
TaskStatus = Literal["active", "completed", "snoozed"]
UndoKind = Literal["create", "update", "delete", "toggle", "bulk", "bulk_delete"]
NotificationKind = Literal["success", "error", "info", "warning"]


@dataclass(frozen=True)
class TodoRecord:
    """A row of the `todos` table, as stored and as sent over the wire."""

    id: str
    identifier_raw: str
    identifier_norm: str
    title: str
    description: Optional[str]
    project: Optional[str]
    tags: Tuple[str, ...]
    priority: str
    completed: bool
    completed_at: Optional[datetime]
    enhanced_description: Optional[str]
    steps: Optional[Tuple[Any, ...]]
    created_at: datetime
    updated_at: datetime

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "identifier_raw": self.identifier_raw,
            "identifier_norm": self.identifier_norm,
            "title": self.title,
            "description": self.description,
            "project": self.project,
            "tags": list(self.tags),
            "priority": self.priority,
            "completed": self.completed,
            "completed_at": to_iso(self.completed_at) if self.completed_at else None,
            "enhanced_description": self.enhanced_description,
            "steps": list(self.steps) if self.steps is not None else None,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class Task:
    """UI-facing task. `status` is derived from `completed`, except the client-only snoozed state."""

    id: str
    title: str
    owner_identifier: str
    priority: Priority
    status: TaskStatus
    completed: bool
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    project: Optional[str] = None
    tags: Tuple[str, ...] = ()
    completed_at: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    enhanced_description: Optional[str] = None
    steps: Optional[Tuple[Any, ...]] = None


@dataclass(frozen=True)
class CreateTaskRequest:
    identifier: str
    title: str
    description: Optional[str] = None
    project: Optional[str] = None
    tags: Tuple[str, ...] = ()
    priority: Priority = "P2"


@dataclass(frozen=True)
class UndoAction:
    kind: UndoKind
    task_ids: Tuple[str, ...]
    timestamp: datetime
    previous: Tuple[Task, ...] = ()

    @property
    def task_id(self) -> Optional[str]:
        return self.task_ids[0] if self.task_ids else None


@dataclass(frozen=True)
class FilterCriteria:
    statuses: Optional[FrozenSet[str]] = None
    priorities: Optional[FrozenSet[str]] = None
    tags: Optional[Tuple[str, ...]] = None
    project: Optional[str] = None
    search: Optional[str] = None


DEFAULT_VIEW = FilterCriteria(statuses=frozenset({"active", "snoozed"}))


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    title: str
    message: str
    action_label: Optional[str] = None
    duration_ms: Optional[int] = None
