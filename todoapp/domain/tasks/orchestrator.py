"""
Client-side owner of the task collection.

Every mutation follows the same contract (see `_reconcile`): apply the local
change (if the operation is optimistic), call the remote API, then either
replace the local entry with the server's row or restore the captured
snapshot and report the error. Failures never escape as exceptions; callers
get `None`/`False` and a notification.

Plain `create` and `update` are confirmed-then-applied. `toggle_complete` and
`delete` are optimistic. Bulk operations are local unless `persist=True`.

Concurrent operations on the same id are not sequenced: the last response to
arrive overwrites the entry.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple

from todoapp.constants import (
    NOTIFY_ERROR,
    NOTIFY_INFO,
    NOTIFY_SUCCESS,
    PRIORITIES,
    TASK_STATUS_ACTIVE,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_SNOOZED,
    UNDO_BULK,
    UNDO_BULK_DELETE,
    UNDO_CAPACITY,
    UNDO_CREATE,
    UNDO_DELETE,
    UNDO_TOGGLE,
    UNDO_UPDATE,
    UNDO_WINDOW,
)
from todoapp.domain.common.errors import DomainError, TransportError, ValidationError
from todoapp.domain.tasks.filtering import owned_by, visible_tasks
from todoapp.domain.tasks.models import DEFAULT_VIEW, FilterCriteria, Notification, Task, UndoAction
from todoapp.domain.tasks.normalize import create_payload, normalize_identifier, to_task
from todoapp.domain.tasks.ports import Clock, KeyValueStore, Notifier, TaskApi
from todoapp.domain.tasks.sweeps import due_completed_expiries, due_snooze_expiries
from todoapp.domain.tasks.undo import LastActionSlot, UndoManager

logger = logging.getLogger(__name__)

PERSISTED_FIELDS = ("title", "description", "project", "tags", "priority", "completed")

UNDO_NOTICE_MS = int(UNDO_WINDOW.total_seconds() * 1000)


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


def split_fields(fields: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Split an update into (remote, local) parts.

    `status` active/completed travels as the persisted `completed` flag;
    `status=snoozed` and `snoozed_until` exist only on the client.
    """
    remote: Dict[str, Any] = {}
    local: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in PERSISTED_FIELDS:
            remote[key] = list(value or []) if key == "tags" else value
        elif key == "status":
            if value == TASK_STATUS_SNOOZED:
                local[key] = value
            elif value in (TASK_STATUS_ACTIVE, TASK_STATUS_COMPLETED):
                local[key] = value
                remote.setdefault("completed", value == TASK_STATUS_COMPLETED)
            else:
                raise ValidationError(f"Unknown status: {value!r}")
        elif key == "snoozed_until":
            if value is not None and value.tzinfo is None:
                raise ValidationError("snoozed_until must be timezone-aware")
            local[key] = value
        else:
            raise ValidationError(f"Unknown field: {key}")
    if "priority" in remote and remote["priority"] not in PRIORITIES:
        raise ValidationError(f"Invalid priority: {remote['priority']!r}")
    return remote, local


def apply_fields(task: Task, fields: Mapping[str, Any], now: datetime) -> Task:
    """Local application of an update, keeping status and its timestamps consistent."""
    if "status" in fields:
        target = fields["status"]
    elif "completed" in fields:
        if fields["completed"]:
            target = TASK_STATUS_COMPLETED
        else:
            target = TASK_STATUS_ACTIVE if task.status == TASK_STATUS_COMPLETED else task.status
    else:
        target = task.status

    changes = {k: v for k, v in fields.items() if k in ("title", "description", "project", "priority")}
    if "tags" in fields:
        changes["tags"] = tuple(fields["tags"] or ())

    if target == TASK_STATUS_COMPLETED:
        completed_at = task.completed_at if task.status == TASK_STATUS_COMPLETED else now
    else:
        completed_at = None
    snoozed_until = fields.get("snoozed_until", task.snoozed_until) if target == TASK_STATUS_SNOOZED else None

    return replace(
        task,
        **changes,
        status=target,
        completed=target == TASK_STATUS_COMPLETED,
        completed_at=completed_at,
        snoozed_until=snoozed_until,
        updated_at=now,
    )


class TaskOrchestrator:
    def __init__(
        self,
        api: TaskApi,
        clock: Clock,
        notifier: Optional[Notifier] = None,
        identifier_store: Optional[KeyValueStore] = None,
        undo_window: timedelta = UNDO_WINDOW,
        undo_capacity: int = UNDO_CAPACITY,
    ) -> None:
        self._api = api
        self._clock = clock
        self._notifier = notifier
        self._store = identifier_store
        self._tasks: list[Task] = []
        self._identifier: Optional[str] = None

        self.undo_log = UndoManager(undo_capacity)
        self.last_action = LastActionSlot(undo_window)

        # state of the most recent remote call
        self.loading = False
        self.error: Optional[str] = None
        self.request_id: Optional[str] = None

        self._load_generation = 0
        self._inflight_load: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def identifier(self) -> Optional[str]:
        return self._identifier

    @property
    def tasks(self) -> list[Task]:
        return owned_by(self._tasks, self._identifier)

    def visible(self, criteria: Optional[FilterCriteria] = DEFAULT_VIEW) -> list[Task]:
        return visible_tasks(self._tasks, self._identifier, criteria)

    def get(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    @property
    def can_undo(self) -> bool:
        return self.last_action.is_fresh(self._clock.now())

    # ------------------------------------------------------------------
    # Identifier lifecycle
    # ------------------------------------------------------------------

    async def restore_identifier(self) -> Optional[str]:
        if self._store is None:
            return None
        stored = await self._store.get()
        if stored:
            self._reset_session()
            self._identifier = stored
            await self.load_all(stored)
        return stored

    async def lock_identifier(self, raw: str) -> bool:
        identifier = (raw or "").strip()
        if not identifier:
            await self._notify(NOTIFY_ERROR, "Action Blocked", "Please enter an identifier (email or name).")
            return False
        if self._store is not None:
            await self._store.set(identifier)
        self._reset_session()
        self._identifier = identifier
        logger.info("Identifier locked: %s", normalize_identifier(identifier))
        return await self.load_all(identifier)

    async def unlock_identifier(self) -> None:
        if self._store is not None:
            await self._store.clear()
        self._supersede_load()
        self._identifier = None
        self._reset_session()

    def _reset_session(self) -> None:
        self._tasks = []
        self.undo_log.clear()
        self.last_action.clear()
        self.loading = False
        self.error = None
        self.request_id = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _supersede_load(self) -> int:
        self._load_generation += 1
        if self._inflight_load is not None and not self._inflight_load.done():
            self._inflight_load.cancel()
        self._inflight_load = None
        return self._load_generation

    async def load_all(self, identifier: Optional[str]) -> bool:
        """Replace the collection with the owner's tasks. A newer call cancels this one."""
        generation = self._supersede_load()
        self._tasks = []
        if not identifier or not identifier.strip():
            self.loading = False
            return False

        self._begin_request()
        fetch = asyncio.ensure_future(self._api.list_tasks(identifier))
        self._inflight_load = fetch
        try:
            rows = await fetch
        except asyncio.CancelledError:
            if generation != self._load_generation:
                logger.debug("Load for %s superseded", normalize_identifier(identifier))
                return False
            raise
        except TransportError as exc:
            self._fail(exc)
            logger.error("Failed to load tasks: %s", exc)
            await self._notify(NOTIFY_ERROR, "Network Error", exc.message or "Failed to load tasks")
            return False
        except DomainError as exc:
            self._fail(exc)
            logger.warning("API error (load tasks): code=%s request_id=%s", exc.code, self.request_id)
            await self._notify(NOTIFY_ERROR, "API Error", exc.message or "An unknown error occurred")
            return False
        finally:
            if self._inflight_load is fetch:
                self._inflight_load = None
                self.loading = False

        if generation != self._load_generation:
            return False
        now = self._clock.now()
        self._tasks = [to_task(row, now=now) for row in rows]
        logger.info("Loaded %d tasks for %s", len(self._tasks), normalize_identifier(identifier))
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, title: str, **fields: Any) -> Optional[Task]:
        identifier = await self._require_identifier("creating tasks")
        if identifier is None:
            return None
        title = (title or "").strip()
        try:
            if not title:
                raise ValidationError("Title is required")
            remote, _ = split_fields(fields)
        except ValidationError as exc:
            await self._reject(exc)
            return None

        remote.pop("completed", None)
        payload = {**remote, "title": title, "tags": list(remote.get("tags") or [])}
        ok, row = await self._reconcile(
            lambda: self._api.create_task(identifier, payload),
            failure="create task",
        )
        if not ok:
            return None

        task = to_task(row, now=self._clock.now())
        if normalize_identifier(identifier) != normalize_identifier(self._identifier):
            return task
        self._tasks.insert(0, task)
        self._record(UNDO_CREATE, (task.id,))
        await self._notify(NOTIFY_SUCCESS, "Task created", f'"{task.title}" has been added.')
        return task

    async def update(self, task_id: str, **fields: Any) -> Optional[Task]:
        identifier = await self._require_identifier("updating tasks")
        if identifier is None:
            return None
        try:
            if not fields:
                raise ValidationError("Request body cannot be empty")
            remote, local = split_fields(fields)
        except ValidationError as exc:
            await self._reject(exc)
            return None

        current = self.get(task_id)
        if current is None:
            return None
        now = self._clock.now()

        if not remote:
            updated = apply_fields(current, local, now)
            self._replace(task_id, updated)
            self._record(UNDO_UPDATE, (task_id,), (current,))
            return updated

        ok, row = await self._reconcile(
            lambda: self._api.update_task(task_id, identifier, remote),
            failure="update task",
        )
        if not ok:
            return None

        updated = self._authoritative(current, row, fields)
        if not self._replace(task_id, updated):
            return updated
        self._record(UNDO_UPDATE, (task_id,), (current,))
        await self._notify(NOTIFY_SUCCESS, "Task updated", f'"{updated.title}" has been updated.')
        return updated

    async def toggle_complete(self, task_id: str) -> bool:
        identifier = await self._require_identifier("updating tasks")
        if identifier is None:
            return False
        original = self.get(task_id)
        if original is None:
            return False

        flipped = not original.completed
        optimistic = apply_fields(original, {"completed": flipped}, self._clock.now())
        ok, row = await self._reconcile(
            lambda: self._api.update_task(task_id, identifier, {"completed": flipped}),
            apply=lambda: self._replace(task_id, optimistic),
            rollback=lambda: self._replace(task_id, original),
            failure="update task status",
        )
        if not ok:
            return False

        self._replace(task_id, self._authoritative(original, row, {"completed": flipped}))
        self._record(UNDO_TOGGLE, (task_id,), (original,), arm=True)
        await self._notify(
            NOTIFY_SUCCESS,
            "Task Completed" if flipped else "Task Uncompleted",
            f'"{original.title}" has been marked as {"completed" if flipped else "uncompleted"}.',
            action_label="Undo",
            duration_ms=UNDO_NOTICE_MS,
        )
        return True

    async def delete(self, task_id: str) -> bool:
        identifier = await self._require_identifier("deleting tasks")
        if identifier is None:
            return False
        task = self.get(task_id)
        if task is None:
            return False

        index = self._index_of(task_id)
        ok, _ = await self._reconcile(
            lambda: self._api.delete_task(task_id, identifier),
            apply=lambda: self._remove(task_id),
            rollback=lambda: self._restore(index, task),
            failure="delete task",
        )
        if not ok:
            return False

        self._record(UNDO_DELETE, (task_id,), (task,), arm=True)
        await self._notify(
            NOTIFY_SUCCESS,
            "Task Deleted",
            f'"{task.title}" has been deleted.',
            action_label="Undo",
            duration_ms=UNDO_NOTICE_MS,
        )
        return True

    async def bulk_update(self, task_ids: Iterable[str], persist: bool = False, **fields: Any) -> int:
        identifier = await self._require_identifier("updating tasks")
        if identifier is None:
            return 0
        try:
            if not fields:
                raise ValidationError("Request body cannot be empty")
            remote, _ = split_fields(fields)
        except ValidationError as exc:
            await self._reject(exc)
            return 0

        wanted = set(task_ids)
        previous = tuple(t for t in self.tasks if t.id in wanted)
        if not previous:
            return 0

        now = self._clock.now()
        for task in previous:
            self._replace(task.id, apply_fields(task, fields, now))
        self._record(UNDO_BULK, tuple(t.id for t in previous), previous)
        await self._notify(NOTIFY_SUCCESS, "Tasks updated", f"{len(previous)} task{_plural(len(previous))} updated")

        if persist and remote:
            for task in previous:
                ok, row = await self._reconcile(
                    lambda tid=task.id: self._api.update_task(tid, identifier, remote),
                    rollback=lambda t=task: self._replace(t.id, t),
                    failure="update task",
                )
                if ok:
                    self._replace(task.id, self._authoritative(task, row, fields))
        return len(previous)

    async def bulk_delete(self, task_ids: Iterable[str], persist: bool = False) -> int:
        identifier = await self._require_identifier("deleting tasks")
        if identifier is None:
            return 0

        wanted = set(task_ids)
        owned = {t.id for t in self.tasks}
        removed = [(i, t) for i, t in enumerate(self._tasks) if t.id in wanted and t.id in owned]
        if not removed:
            return 0

        gone = {t.id for _, t in removed}
        self._tasks = [t for t in self._tasks if t.id not in gone]
        previous = tuple(t for _, t in removed)
        self._record(UNDO_BULK_DELETE, tuple(t.id for t in previous), previous, arm=True)
        await self._notify(
            NOTIFY_SUCCESS,
            "Tasks deleted",
            f"{len(previous)} task{_plural(len(previous))} deleted successfully",
            action_label="Undo",
            duration_ms=UNDO_NOTICE_MS,
        )

        if persist:
            for index, task in removed:
                await self._reconcile(
                    lambda tid=task.id: self._api.delete_task(tid, identifier),
                    rollback=lambda i=index, t=task: self._restore(i, t),
                    failure="delete task",
                )
        return len(previous)

    async def snooze(self, task_id: str, until: datetime) -> Optional[Task]:
        task = await self.update(task_id, status=TASK_STATUS_SNOOZED, snoozed_until=until)
        if task is not None:
            await self._notify(NOTIFY_INFO, "Task snoozed", f'"{task.title}" snoozed until {until:%H:%M}.')
        return task

    async def cycle_priority(self, task_id: str) -> Optional[Task]:
        task = self.get(task_id)
        if task is None:
            return None
        current = PRIORITIES.index(task.priority) if task.priority in PRIORITIES else len(PRIORITIES) - 1
        return await self.update(task_id, priority=PRIORITIES[(current + 1) % len(PRIORITIES)])

    async def clear_completed(self) -> int:
        completed = [t.id for t in self.tasks if t.status == TASK_STATUS_COMPLETED]
        removed = 0
        for task_id in completed:
            if await self.delete(task_id):
                removed += 1
        if completed:
            await self._notify(
                NOTIFY_INFO,
                "Completed tasks cleared",
                f"{removed} completed task{_plural(removed)} removed",
            )
        return removed

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    async def undo(self) -> bool:
        recent = self.last_action.take_if_fresh(self._clock.now())
        if recent is not None:
            await self._undo_recent(recent)
            return True

        action = self.undo_log.get_last_action()
        if action is None:
            return False
        self._undo_logged(action)
        await self._notify(NOTIFY_INFO, "Action undone", "Previous action has been restored")
        return True

    async def _undo_recent(self, action: UndoAction) -> None:
        if action.kind in (UNDO_DELETE, UNDO_BULK_DELETE):
            for task in action.previous:
                await self._recreate(task)
        elif action.kind == UNDO_TOGGLE and action.previous:
            await self._revert_toggle(action.previous[0])

    def _undo_logged(self, action: UndoAction) -> None:
        if action.kind == UNDO_CREATE:
            if action.task_id is not None:
                self._remove(action.task_id)
        elif action.kind in (UNDO_UPDATE, UNDO_TOGGLE, UNDO_BULK):
            for task in action.previous:
                self._replace(task.id, task)
        elif action.kind in (UNDO_DELETE, UNDO_BULK_DELETE):
            for task in action.previous:
                self._restore(len(self._tasks), task)

    async def _recreate(self, task: Task) -> Optional[Task]:
        """Restore a deleted task by creating it again; the store assigns a new id."""
        identifier = await self._require_identifier("restoring tasks")
        if identifier is None:
            return None
        ok, row = await self._reconcile(
            lambda: self._api.create_task(identifier, create_payload(task)),
            failure="restore task",
        )
        if not ok:
            return None
        restored = to_task(row, now=self._clock.now())
        self._tasks.insert(0, restored)
        await self._notify(NOTIFY_SUCCESS, "Task Restored", f'"{restored.title}" has been restored.')
        return restored

    async def _revert_toggle(self, previous: Task) -> bool:
        identifier = await self._require_identifier("reverting task status")
        if identifier is None:
            return False
        ok, row = await self._reconcile(
            lambda: self._api.update_task(previous.id, identifier, {"completed": previous.completed}),
            failure="revert task status",
        )
        if not ok:
            return False
        reverted = self._authoritative(previous, row, {})
        self._replace(previous.id, reverted)
        await self._notify(NOTIFY_SUCCESS, "Status Reverted", f'"{reverted.title}" status has been reverted.')
        return True

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def expire_snoozes(self, now: Optional[datetime] = None) -> list[str]:
        """Local only: snooze is client state, the server never saw it."""
        now = now or self._clock.now()
        due = due_snooze_expiries(self.tasks, now)
        for task_id in due:
            task = self.get(task_id)
            if task is not None:
                self._replace(task_id, replace(task, status=TASK_STATUS_ACTIVE, snoozed_until=None, updated_at=now))
        if due:
            logger.info("Snooze expired for %d tasks", len(due))
        return due

    async def cleanup_completed(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock.now()
        due = due_completed_expiries(self.tasks, now)
        removed = 0
        for task_id in due:
            if await self.delete(task_id):
                removed += 1
        if removed:
            logger.info("Auto-cleanup removed %d completed tasks", removed)
            await self._notify(
                NOTIFY_INFO,
                "Auto-cleanup completed",
                f"{removed} old completed task{_plural(removed)} automatically removed",
            )
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _reconcile(
        self,
        remote: Callable[[], Awaitable[Any]],
        *,
        apply: Optional[Callable[[], Any]] = None,
        rollback: Optional[Callable[[], Any]] = None,
        failure: str,
    ) -> Tuple[bool, Any]:
        """Apply locally, call the remote; on failure roll back and report. Returns (ok, result)."""
        if apply is not None:
            apply()
        self._begin_request()
        try:
            result = await remote()
        except TransportError as exc:
            if rollback is not None:
                rollback()
            self._fail(exc)
            logger.error("Failed to %s: %s", failure, exc)
            await self._notify(NOTIFY_ERROR, "Network Error", exc.message or f"Failed to {failure}.")
            return False, None
        except DomainError as exc:
            if rollback is not None:
                rollback()
            self._fail(exc)
            logger.warning("API error (%s): code=%s request_id=%s", failure, exc.code, self.request_id)
            await self._notify(NOTIFY_ERROR, "API Error", exc.message or f"Failed to {failure}.")
            return False, None
        finally:
            self.loading = False
        return True, result

    def _authoritative(self, before: Task, row: Mapping[str, Any], fields: Mapping[str, Any]) -> Task:
        """Server row mapped to a Task, with client-only snooze state carried over."""
        task = to_task(row, now=self._clock.now())
        if task.completed:
            return task
        if fields.get("status") == TASK_STATUS_SNOOZED:
            return replace(task, status=TASK_STATUS_SNOOZED, snoozed_until=fields.get("snoozed_until"))
        if before.status == TASK_STATUS_SNOOZED and "status" not in fields and "completed" not in fields:
            return replace(task, status=TASK_STATUS_SNOOZED, snoozed_until=before.snoozed_until)
        return task

    async def _require_identifier(self, action: str) -> Optional[str]:
        if self._identifier:
            return self._identifier
        await self._notify(NOTIFY_ERROR, "Action Blocked", f"Please lock an identifier before {action}.")
        return None

    async def _reject(self, exc: ValidationError) -> None:
        self.error = exc.message
        logger.info("Rejected: %s", exc.message)
        await self._notify(NOTIFY_ERROR, "Validation Error", exc.message)

    def _begin_request(self) -> None:
        self.loading = True
        self.error = None
        self.request_id = None

    def _fail(self, exc: DomainError) -> None:
        self.error = exc.message
        self.request_id = getattr(exc, "request_id", None)

    def _record(
        self,
        kind: str,
        task_ids: Tuple[str, ...],
        previous: Tuple[Task, ...] = (),
        arm: bool = False,
    ) -> UndoAction:
        action = UndoAction(kind=kind, task_ids=task_ids, previous=previous, timestamp=self._clock.now())
        self.undo_log.add_action(action)
        if arm:
            self.last_action.arm(action)
        return action

    def _index_of(self, task_id: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return -1

    def _replace(self, task_id: str, task: Task) -> bool:
        idx = self._index_of(task_id)
        if idx < 0:
            return False
        self._tasks[idx] = task
        return True

    def _remove(self, task_id: str) -> Optional[Task]:
        idx = self._index_of(task_id)
        if idx < 0:
            return None
        return self._tasks.pop(idx)

    def _restore(self, index: int, task: Task) -> None:
        if self._index_of(task.id) >= 0:
            return
        self._tasks.insert(max(0, min(index, len(self._tasks))), task)

    async def _notify(
        self,
        kind: str,
        title: str,
        message: str,
        action_label: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        if self._notifier is None:
            return
        notification = Notification(kind, title, message, action_label=action_label, duration_ms=duration_ms)
        try:
            await self._notifier.notify(notification)
        except Exception:
            logger.error("Notifier failed for %r", title, exc_info=True)
