from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from todoapp.domain.common.errors import NotFoundError, ValidationError
from todoapp.domain.common.time import to_iso
from todoapp.domain.tasks.models import CreateTaskRequest, TodoRecord
from todoapp.domain.tasks.ports import Clock, IdGenerator, TaskRepository
from todoapp.domain.tasks.rules import (
    validate_description,
    validate_identifier,
    validate_patch,
    validate_priority,
    validate_tags,
    validate_title,
)

logger = logging.getLogger(__name__)

OWNERSHIP_MISS = "Task not found or permission denied"


class TaskService:
    """
    Server-side task logic. No FastAPI. No sqlite.

    Every read and write is scoped to the normalized owner identifier; a row
    that exists but belongs to someone else is indistinguishable from a
    missing one.
    """

    def __init__(self, repo: TaskRepository, clock: Clock, ids: IdGenerator) -> None:
        self._repo = repo
        self._clock = clock
        self._ids = ids

    async def list_tasks(self, identifier: str) -> Sequence[TodoRecord]:
        norm = validate_identifier(identifier)
        return await self._repo.list_by_owner(norm)

    async def create_task(self, req: CreateTaskRequest) -> TodoRecord:
        norm = validate_identifier(req.identifier)
        title = validate_title(req.title)
        validate_description(req.description)
        validate_priority(req.priority)
        tags = validate_tags(req.tags)

        now = self._clock.now()
        record = TodoRecord(
            id=self._ids.new_id(),
            identifier_raw=req.identifier.strip(),
            identifier_norm=norm,
            title=title,
            description=req.description,
            project=req.project,
            tags=tuple(tags),
            priority=req.priority,
            completed=False,
            completed_at=None,
            enhanced_description=None,
            steps=None,
            created_at=now,
            updated_at=now,
        )
        saved = await self._repo.insert(record)
        logger.info("Created task %s for %s", saved.id, norm)
        return saved

    async def update_task(self, task_id: str, identifier: str, fields: Mapping[str, Any]) -> TodoRecord:
        norm = validate_identifier(identifier)
        clean = validate_patch(fields)
        updated = await self._repo.update(task_id, norm, clean, to_iso(self._clock.now()))
        if updated is None:
            raise NotFoundError(OWNERSHIP_MISS)
        return updated

    async def delete_task(self, task_id: str, identifier: str) -> str:
        norm = validate_identifier(identifier)
        deleted = await self._repo.delete(task_id, norm)
        if deleted is None:
            raise NotFoundError(OWNERSHIP_MISS)
        logger.info("Deleted task %s for %s", deleted, norm)
        return deleted

    async def apply_enhancement(
        self,
        task_id: Optional[str],
        enhanced_description: Optional[str] = None,
        steps: Optional[Sequence[Any]] = None,
    ) -> TodoRecord:
        """Writes workflow output onto a task. Not owner-scoped: the caller is the signed webhook."""
        if not task_id:
            raise ValidationError("todo_id is required")
        fields: dict[str, Any] = {}
        if enhanced_description is not None:
            fields["enhanced_description"] = enhanced_description
        if steps is not None:
            fields["steps"] = list(steps)
        if not fields:
            raise ValidationError("At least one of enhanced_description or steps is required")

        updated = await self._repo.update_enrichment(task_id, fields, to_iso(self._clock.now()))
        if updated is None:
            raise NotFoundError("Task not found")
        logger.info("Enhancement applied to task %s", task_id)
        return updated
