from __future__ import annotations

from aiogram import Router, html
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from todoapp.ui.telegram.handlers._common import command_args
from todoapp.ui.telegram.session import TodoSession

router = Router()

HELP_TEXT = (
    "/lock &lt;email or name&gt; - choose whose tasks to manage\n"
    "/add &lt;title&gt; [!P0..!P3] [#tag] - add a task\n"
    "/list, /completed, /search &lt;text&gt; - show tasks\n"
    "/selectall, /unselect, /bulkdone, /bulkdel - work on the selection\n"
    "/undo, /clearcompleted, /whoami, /unlock"
)


@router.message(CommandStart())
async def start_cmd(message: Message, session: TodoSession):
    identifier = session.orchestrator.identifier
    if identifier:
        greeting = f"Managing tasks for {html.bold(html.quote(identifier))}."
    else:
        greeting = "No identifier locked yet."
    await message.answer(f"{greeting}\n\n{HELP_TEXT}")


@router.message(Command("lock"))
async def lock_cmd(message: Message, session: TodoSession):
    raw = command_args(message)
    if await session.orchestrator.lock_identifier(raw):
        session.selection.clear()
        count = len(session.orchestrator.tasks)
        await message.answer(f"Locked to {html.bold(html.quote(raw))}. {count} tasks loaded. /list")


@router.message(Command("unlock"))
async def unlock_cmd(message: Message, session: TodoSession):
    await session.orchestrator.unlock_identifier()
    session.selection.clear()
    await message.answer("Identifier unlocked. Use /lock to choose another.")


@router.message(Command("whoami"))
async def whoami_cmd(message: Message, session: TodoSession):
    identifier = session.orchestrator.identifier
    if not identifier:
        await message.answer("No identifier locked. Use /lock &lt;email or name&gt;.")
        return
    await message.answer(f"Locked identifier: {html.bold(html.quote(identifier))}")
