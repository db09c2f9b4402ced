from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Sequence

import aiosqlite

from todoapp.domain.common.errors import StorageError
from todoapp.domain.common.time import from_iso, to_iso
from todoapp.domain.tasks.models import TodoRecord
from todoapp.domain.tasks.ports import TaskRepository
from todoapp.infra.db.connection import Database

logger = logging.getLogger(__name__)

# columns a partial update may touch; anything else is ignored
_UPDATABLE = ("title", "description", "project", "tags", "priority", "completed")
_ENRICHMENT = ("enhanced_description", "steps")


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except aiosqlite.Error as e:
        logger.error("Database error while %s: %s", action, e, exc_info=True)
        raise StorageError(f"Database error while {action}") from e


class TaskSqliteRepo(TaskRepository):
    def __init__(self, db: Database) -> None:
        self._db = db

    async def insert(self, record: TodoRecord) -> TodoRecord:
        with _storage_errors("creating task"):
            row = await self._db.execute_returning(
                """
                INSERT INTO todos(
                  id, identifier_raw, identifier_norm, title, description, project,
                  tags, priority, completed, completed_at, enhanced_description, steps,
                  created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING *;
                """,
                (
                    record.id,
                    record.identifier_raw,
                    record.identifier_norm,
                    record.title,
                    record.description,
                    record.project,
                    json.dumps(list(record.tags), ensure_ascii=False),
                    record.priority,
                    1 if record.completed else 0,
                    to_iso(record.completed_at) if record.completed_at else None,
                    record.enhanced_description,
                    json.dumps(list(record.steps), ensure_ascii=False) if record.steps is not None else None,
                    to_iso(record.created_at),
                    to_iso(record.updated_at),
                ),
            )
        if row is None:
            raise StorageError("Insert returned no row")
        return self._row_to_record(row)

    async def list_by_owner(self, identifier_norm: str) -> Sequence[TodoRecord]:
        with _storage_errors("listing tasks"):
            rows = await self._db.fetchall(
                """
                SELECT *
                FROM todos
                WHERE identifier_norm = ?
                ORDER BY created_at DESC;
                """,
                (identifier_norm,),
            )
        return [self._row_to_record(r) for r in rows]

    async def update(
        self,
        task_id: str,
        identifier_norm: str,
        fields: Mapping[str, Any],
        updated_at_iso: str,
    ) -> Optional[TodoRecord]:
        assignments: list[str] = []
        params: list[Any] = []
        for key in _UPDATABLE:
            if key not in fields:
                continue
            value = fields[key]
            if key == "tags":
                value = json.dumps(list(value or []), ensure_ascii=False)
            elif key == "completed":
                # completed_at is set once on the false -> true flip and cleared on the way back
                if value:
                    assignments.append("completed_at = COALESCE(completed_at, ?)")
                    params.append(updated_at_iso)
                else:
                    assignments.append("completed_at = NULL")
                value = 1 if value else 0
            assignments.append(f"{key} = ?")
            params.append(value)

        assignments.append("updated_at = ?")
        params.append(updated_at_iso)
        params.extend([task_id, identifier_norm])

        with _storage_errors("updating task"):
            row = await self._db.execute_returning(
                f"UPDATE todos SET {', '.join(assignments)} WHERE id = ? AND identifier_norm = ? RETURNING *;",
                params,
            )
        return self._row_to_record(row) if row else None

    async def delete(self, task_id: str, identifier_norm: str) -> Optional[str]:
        with _storage_errors("deleting task"):
            row = await self._db.execute_returning(
                "DELETE FROM todos WHERE id = ? AND identifier_norm = ? RETURNING id;",
                (task_id, identifier_norm),
            )
        return row["id"] if row else None

    async def update_enrichment(
        self,
        task_id: str,
        fields: Mapping[str, Any],
        updated_at_iso: str,
    ) -> Optional[TodoRecord]:
        assignments: list[str] = []
        params: list[Any] = []
        for key in _ENRICHMENT:
            if key not in fields:
                continue
            value = fields[key]
            if key == "steps" and value is not None:
                value = json.dumps(list(value), ensure_ascii=False)
            assignments.append(f"{key} = ?")
            params.append(value)
        assignments.append("updated_at = ?")
        params.extend([updated_at_iso, task_id])

        with _storage_errors("applying enhancement"):
            row = await self._db.execute_returning(
                f"UPDATE todos SET {', '.join(assignments)} WHERE id = ? RETURNING *;",
                params,
            )
        return self._row_to_record(row) if row else None

    def _row_to_record(self, row) -> TodoRecord:
        steps_raw = row["steps"]
        return TodoRecord(
            id=row["id"],
            identifier_raw=row["identifier_raw"],
            identifier_norm=row["identifier_norm"],
            title=row["title"],
            description=row["description"],
            project=row["project"],
            tags=tuple(json.loads(row["tags"] or "[]")),
            priority=row["priority"],
            completed=bool(row["completed"]),
            completed_at=from_iso(row["completed_at"]) if row["completed_at"] else None,
            enhanced_description=row["enhanced_description"],
            steps=tuple(json.loads(steps_raw)) if steps_raw else None,
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )
