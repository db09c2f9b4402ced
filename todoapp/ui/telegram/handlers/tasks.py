from __future__ import annotations

from datetime import timedelta
from typing import Optional

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from todoapp.constants import PRIORITIES, TASK_STATUS_COMPLETED
from todoapp.domain.tasks.models import DEFAULT_VIEW, FilterCriteria
from todoapp.domain.tasks.ports import Clock
from todoapp.ui.telegram.handlers._common import command_args, render_tasks, send_or_edit
from todoapp.ui.telegram.keyboards.tasks import tasks_list_kb
from todoapp.ui.telegram.session import TodoSession

router = Router()

SNOOZE_FOR = timedelta(hours=1)
COMPLETED_VIEW = FilterCriteria(statuses=frozenset({TASK_STATUS_COMPLETED}))


def parse_add_args(text: str) -> tuple[str, Optional[str], list[str]]:
    """`Buy milk !P1 #home #errand` -> ("Buy milk", "P1", ["home", "errand"])."""
    words: list[str] = []
    priority: Optional[str] = None
    tags: list[str] = []
    for token in text.split():
        if token.startswith("!") and token[1:].upper() in PRIORITIES:
            priority = token[1:].upper()
        elif token.startswith("#") and len(token) > 1:
            tags.append(token[1:])
        else:
            words.append(token)
    return " ".join(words), priority, tags


async def _show(
    target_message: Message,
    session: TodoSession,
    clock: Clock,
    *,
    heading: str = "Tasks",
    criteria: Optional[FilterCriteria] = DEFAULT_VIEW,
    prefer_edit: bool = False,
) -> None:
    session.refresh_selection()
    tasks = session.orchestrator.visible(criteria)
    text = render_tasks(heading, tasks, session.selection, clock.now())
    markup = tasks_list_kb(tasks, session.selection) if tasks else None
    await send_or_edit(target_message=target_message, text=text, markup=markup, prefer_edit=prefer_edit)


@router.message(Command("add"))
async def add_cmd(message: Message, session: TodoSession, clock: Clock):
    title, priority, tags = parse_add_args(command_args(message))
    if not title:
        await message.answer("Usage: /add &lt;title&gt; [!P0..!P3] [#tag ...]")
        return
    fields = {"tags": tags}
    if priority:
        fields["priority"] = priority
    if await session.orchestrator.create(title, **fields):
        await _show(message, session, clock)


@router.message(Command("list"))
async def list_cmd(message: Message, session: TodoSession, clock: Clock):
    await _show(message, session, clock)


@router.message(Command("completed"))
async def completed_cmd(message: Message, session: TodoSession, clock: Clock):
    await _show(message, session, clock, heading="Completed", criteria=COMPLETED_VIEW)


@router.message(Command("search"))
async def search_cmd(message: Message, session: TodoSession, clock: Clock):
    needle = command_args(message)
    if not needle:
        await message.answer("Usage: /search &lt;text&gt;")
        return
    await _show(message, session, clock, heading=f"Search: {needle}", criteria=FilterCriteria(search=needle))


@router.message(Command("undo"))
async def undo_cmd(message: Message, session: TodoSession, clock: Clock):
    if not await session.orchestrator.undo():
        await message.answer("Nothing to undo.")
        return
    await _show(message, session, clock)


@router.message(Command("selectall"))
async def selectall_cmd(message: Message, session: TodoSession, clock: Clock):
    session.selection.select_all(session.orchestrator.visible(DEFAULT_VIEW))
    await _show(message, session, clock)


@router.message(Command("unselect"))
async def unselect_cmd(message: Message, session: TodoSession, clock: Clock):
    session.selection.clear()
    await _show(message, session, clock)


@router.message(Command("bulkdone"))
async def bulkdone_cmd(message: Message, session: TodoSession, clock: Clock):
    ids = session.selection.selected_ids
    if not ids:
        await message.answer("Select tasks first (☐ button or /selectall).")
        return
    await session.orchestrator.bulk_update(ids, persist=True, status=TASK_STATUS_COMPLETED)
    session.selection.clear()
    await _show(message, session, clock)


@router.message(Command("bulkdel"))
async def bulkdel_cmd(message: Message, session: TodoSession, clock: Clock):
    ids = session.selection.selected_ids
    if not ids:
        await message.answer("Select tasks first (☐ button or /selectall).")
        return
    await session.orchestrator.bulk_delete(ids, persist=True)
    session.selection.clear()
    await _show(message, session, clock)


@router.message(Command("clearcompleted"))
async def clearcompleted_cmd(message: Message, session: TodoSession, clock: Clock):
    await session.orchestrator.clear_completed()
    await _show(message, session, clock)


# ----------------------------------------------------------------------
# Inline buttons: td:<action>:<task_id>
# ----------------------------------------------------------------------


@router.callback_query(F.data.startswith("td:"))
async def task_button_cb(cb: CallbackQuery, session: TodoSession, clock: Clock):
    _, action, task_id = (cb.data or "").split(":", 2)
    orchestrator = session.orchestrator

    if action == "done":
        await orchestrator.toggle_complete(task_id)
    elif action == "sel":
        session.selection.select(task_id, multi=True)
    elif action == "prio":
        await orchestrator.cycle_priority(task_id)
    elif action == "snooze":
        await orchestrator.snooze(task_id, clock.now() + SNOOZE_FOR)
    elif action == "del":
        await orchestrator.delete(task_id)
    else:
        await cb.answer("Unknown action")
        return

    await cb.answer()
    if isinstance(cb.message, Message):
        await _show(cb.message, session, clock, prefer_edit=True)
