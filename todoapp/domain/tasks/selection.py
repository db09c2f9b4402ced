from __future__ import annotations

from typing import Iterable, Optional, Sequence

from todoapp.constants import TASK_STATUS_ACTIVE
from todoapp.domain.tasks.models import Task


class SelectionState:
    """Which tasks are selected, focused or being edited. Never touches the tasks themselves."""

    def __init__(self) -> None:
        # dict keeps insertion order for bulk operations
        self._selected: dict[str, None] = {}
        self.focused_id: Optional[str] = None
        self.editing_id: Optional[str] = None

    @property
    def selected_ids(self) -> list[str]:
        return list(self._selected)

    def is_selected(self, task_id: str) -> bool:
        return task_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def select(self, task_id: str, multi: bool = False) -> None:
        if multi:
            if task_id in self._selected:
                del self._selected[task_id]
            else:
                self._selected[task_id] = None
            return
        if task_id in self._selected and len(self._selected) == 1:
            self._selected.clear()
        else:
            self._selected = {task_id: None}

    def select_all(self, tasks: Iterable[Task]) -> None:
        self._selected = {t.id: None for t in tasks if t.status == TASK_STATUS_ACTIVE}

    def clear(self) -> None:
        self._selected.clear()

    def prune(self, existing_ids: Iterable[str]) -> None:
        keep = set(existing_ids)
        self._selected = {tid: None for tid in self._selected if tid in keep}
        if self.focused_id not in keep:
            self.focused_id = None
        if self.editing_id not in keep:
            self.editing_id = None

    # ----- focus -----

    def focus(self, task_id: Optional[str]) -> None:
        self.focused_id = task_id

    def _step_focus(self, ids: Sequence[str], step: int) -> Optional[str]:
        if not ids:
            self.focused_id = None
            return None
        if self.focused_id not in ids:
            self.focused_id = ids[0] if step > 0 else ids[-1]
        else:
            idx = ids.index(self.focused_id)
            self.focused_id = ids[(idx + step) % len(ids)]
        return self.focused_id

    def focus_next(self, ids: Sequence[str]) -> Optional[str]:
        return self._step_focus(ids, 1)

    def focus_previous(self, ids: Sequence[str]) -> Optional[str]:
        return self._step_focus(ids, -1)

    # ----- edit -----

    def begin_edit(self, task_id: str) -> None:
        self.editing_id = task_id

    def cancel_edit(self) -> None:
        self.editing_id = None

    def finish_edit(self) -> Optional[str]:
        task_id, self.editing_id = self.editing_id, None
        return task_id
