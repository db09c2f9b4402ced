from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from aiogram import html
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup, Message

from todoapp.constants import TASK_STATUS_COMPLETED, TASK_STATUS_SNOOZED
from todoapp.domain.tasks.models import Task
from todoapp.domain.tasks.selection import SelectionState
from todoapp.utils import format_time_until_deletion, priority_label, relative_time


def command_args(message: Message) -> str:
    text = (message.text or "").strip()
    if not text:
        return ""
    parts = text.split(maxsplit=1)
    if len(parts) < 2:
        return ""
    return parts[1].strip()


def render_task_line(task: Task, selection: SelectionState, now: datetime) -> str:
    mark = "☑️" if selection.is_selected(task.id) else "•"
    line = f"{mark} [{task.priority} {priority_label(task.priority)}] {html.quote(task.title)}"
    if task.tags:
        line += " " + " ".join(f"#{html.quote(t)}" for t in task.tags)
    if task.status == TASK_STATUS_SNOOZED and task.snoozed_until is not None:
        line += f" (snoozed until {task.snoozed_until.strftime('%H:%M')})"
    if task.status == TASK_STATUS_COMPLETED and task.completed_at is not None:
        done = relative_time(task.completed_at, now)
        line += f" (done {done}, {format_time_until_deletion(task.completed_at, now)})"
    return line


def render_tasks(heading: str, tasks: Sequence[Task], selection: SelectionState, now: datetime) -> str:
    if not tasks:
        return f"{html.bold(heading)}\nNo tasks."
    lines = [html.bold(heading)]
    lines.extend(render_task_line(t, selection, now) for t in tasks)
    if len(selection):
        lines.append(f"\n{len(selection)} selected: /bulkdone /bulkdel /unselect")
    return "\n".join(lines)


async def send_or_edit(
    *,
    target_message: Message,
    text: str,
    markup: Optional[InlineKeyboardMarkup],
    prefer_edit: bool,
) -> None:
    """
    prefer_edit=True: edit the message the button belongs to.
    prefer_edit=False: send a new message.
    """
    if prefer_edit:
        try:
            await target_message.edit_text(text, reply_markup=markup)
            return
        except TelegramBadRequest:
            # unchanged content or a message too old to edit
            pass
    await target_message.answer(text, reply_markup=markup)
