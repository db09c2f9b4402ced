from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Optional

from todoapp.constants import UNDO_CAPACITY, UNDO_WINDOW
from todoapp.domain.tasks.models import UndoAction


class UndoManager:
    """
    Bounded undo log: push at the end, pop from the end, oldest entry dropped
    silently once `capacity` is exceeded.
    """

    def __init__(self, capacity: int = UNDO_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._actions: Deque[UndoAction] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._actions.maxlen or 0

    def add_action(self, action: UndoAction) -> None:
        self._actions.append(action)

    def get_last_action(self) -> Optional[UndoAction]:
        return self._actions.pop() if self._actions else None

    def peek(self) -> Optional[UndoAction]:
        return self._actions[-1] if self._actions else None

    def clear(self) -> None:
        self._actions.clear()

    @property
    def has_actions(self) -> bool:
        return bool(self._actions)

    def __len__(self) -> int:
        return len(self._actions)


class LastActionSlot:
    """The single most-recent destructive action, usable for a short window."""

    def __init__(self, window: timedelta = UNDO_WINDOW) -> None:
        self._window = window
        self._action: Optional[UndoAction] = None

    @property
    def action(self) -> Optional[UndoAction]:
        return self._action

    def arm(self, action: UndoAction) -> None:
        self._action = action

    def is_fresh(self, now: datetime) -> bool:
        return self._action is not None and now - self._action.timestamp < self._window

    def take_if_fresh(self, now: datetime) -> Optional[UndoAction]:
        if not self.is_fresh(now):
            return None
        action, self._action = self._action, None
        return action

    def clear(self) -> None:
        self._action = None
