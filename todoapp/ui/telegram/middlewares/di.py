from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from todoapp.domain.tasks.ports import Clock
from todoapp.ui.telegram.session import SessionRegistry


class DIMiddleware(BaseMiddleware):
    """
    Inject dependencies to handlers via `data` dict.

    Handlers can request args by name, e.g.
      async def handler(message: Message, session: TodoSession, clock: Clock): ...
    """

    def __init__(self, registry: SessionRegistry, clock: Clock) -> None:
        self._registry = registry
        self._clock = clock

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        chat_id = None
        if isinstance(event, Message):
            chat_id = event.chat.id
        elif isinstance(event, CallbackQuery) and event.message:
            chat_id = event.message.chat.id

        # keep names stable across the project
        data["clock"] = self._clock
        data["registry"] = self._registry
        if chat_id is not None:
            data["session"] = await self._registry.get(chat_id)

        return await handler(event, data)
