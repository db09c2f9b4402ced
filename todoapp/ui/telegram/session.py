from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from aiogram import Bot, html

from todoapp.constants import COMPLETED_SWEEP_INTERVAL_SECONDS, SNOOZE_SWEEP_INTERVAL_SECONDS
from todoapp.domain.tasks.models import Notification
from todoapp.domain.tasks.orchestrator import TaskOrchestrator
from todoapp.domain.tasks.ports import Clock, Notifier, TaskApi
from todoapp.domain.tasks.selection import SelectionState
from todoapp.infra.db.connection import Database
from todoapp.infra.local_store import IdentifierStore
from todoapp.infra.scheduler.loop import PeriodicConfig, PeriodicTask

logger = logging.getLogger(__name__)


class ChatNotifier(Notifier):
    """Delivers orchestrator notifications as chat messages."""

    def __init__(self, bot: Bot, chat_id: int) -> None:
        self._bot = bot
        self._chat_id = chat_id

    async def notify(self, notification: Notification) -> None:
        text = f"{html.bold(html.quote(notification.title))}\n{html.quote(notification.message)}"
        if notification.action_label == "Undo":
            text += "\n/undo to revert"
        await self._bot.send_message(chat_id=self._chat_id, text=text)


@dataclass
class TodoSession:
    """Everything one chat needs: its orchestrator, its selection and its two sweeps."""

    chat_id: int
    orchestrator: TaskOrchestrator
    selection: SelectionState = field(default_factory=SelectionState)
    sweeps: List[PeriodicTask] = field(default_factory=list)

    async def start(self) -> None:
        await self.orchestrator.restore_identifier()
        for sweep in self.sweeps:
            sweep.start()

    async def close(self) -> None:
        for sweep in self.sweeps:
            await sweep.stop()

    def refresh_selection(self) -> None:
        self.selection.prune(t.id for t in self.orchestrator.tasks)


def build_sweeps(orchestrator: TaskOrchestrator) -> List[PeriodicTask]:
    return [
        PeriodicTask(
            "snooze-expiry",
            orchestrator.expire_snoozes,
            PeriodicConfig(interval_seconds=SNOOZE_SWEEP_INTERVAL_SECONDS),
        ),
        PeriodicTask(
            "completed-cleanup",
            orchestrator.cleanup_completed,
            PeriodicConfig(interval_seconds=COMPLETED_SWEEP_INTERVAL_SECONDS, run_immediately=True),
        ),
    ]


class SessionRegistry:
    """Creates a TodoSession per chat on first use and keeps it for the process lifetime."""

    def __init__(self, api: TaskApi, clock: Clock, client_db: Database, bot: Bot) -> None:
        self._api = api
        self._clock = clock
        self._db = client_db
        self._bot = bot
        self._sessions: Dict[int, TodoSession] = {}
        self._starting: Dict[int, asyncio.Task] = {}

    async def get(self, chat_id: int) -> TodoSession:
        """The chat's session, returned only after its identifier restore and first load."""
        session = self._sessions.get(chat_id)
        if session is None:
            session = self._create(chat_id)
        # every caller waits on the same startup, not just the first one
        await asyncio.shield(self._starting[chat_id])
        return session

    def _create(self, chat_id: int) -> TodoSession:
        orchestrator = TaskOrchestrator(
            api=self._api,
            clock=self._clock,
            notifier=ChatNotifier(self._bot, chat_id),
            identifier_store=IdentifierStore(self._db, scope=f"chat:{chat_id}"),
        )
        session = TodoSession(chat_id=chat_id, orchestrator=orchestrator, sweeps=build_sweeps(orchestrator))
        self._sessions[chat_id] = session
        self._starting[chat_id] = asyncio.ensure_future(session.start())
        logger.info("Session created for chat %s", chat_id)
        return session

    async def close_all(self) -> None:
        for starting in self._starting.values():
            if not starting.done():
                starting.cancel()
        for session in list(self._sessions.values()):
            await session.close()
        self._sessions.clear()
        self._starting.clear()
