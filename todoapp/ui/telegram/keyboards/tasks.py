from __future__ import annotations

from typing import Iterable

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from todoapp.domain.tasks.models import Task
from todoapp.domain.tasks.selection import SelectionState


def tasks_list_kb(tasks: Iterable[Task], selection: SelectionState) -> InlineKeyboardMarkup:
    """One row per task: toggle, select, cycle priority, snooze 1h, delete."""
    kb = InlineKeyboardBuilder()
    for task in tasks:
        kb.button(text="↩️" if task.completed else "✅", callback_data=f"td:done:{task.id}")
        kb.button(text="☑️" if selection.is_selected(task.id) else "⬜", callback_data=f"td:sel:{task.id}")
        kb.button(text=task.priority, callback_data=f"td:prio:{task.id}")
        kb.button(text="💤", callback_data=f"td:snooze:{task.id}")
        kb.button(text="🗑️", callback_data=f"td:del:{task.id}")
    kb.adjust(5)
    return kb.as_markup()
