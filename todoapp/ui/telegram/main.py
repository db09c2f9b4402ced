from __future__ import annotations

import asyncio
import logging
import os

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import ExceptionTypeFilter
from aiogram.types import ErrorEvent

from todoapp.config import configure_logging, load_settings, resolve_path
from todoapp.domain.common.errors import DomainError
from todoapp.domain.common.time import to_iso
from todoapp.infra.clock.system_clock import SystemClock
from todoapp.infra.db.connection import Database
from todoapp.infra.db.schema_version import apply_migrations
from todoapp.infra.http.client import HttpTaskApi
from todoapp.ui.telegram.handlers.identity import router as identity_router
from todoapp.ui.telegram.handlers.tasks import router as tasks_router
from todoapp.ui.telegram.middlewares.di import DIMiddleware
from todoapp.ui.telegram.session import SessionRegistry

logger = logging.getLogger(__name__)


async def check_api(api: HttpTaskApi) -> bool:
    """Startup check of the task API. The bot keeps running if it is down."""
    try:
        status = await api.health()
    except DomainError as e:
        logger.warning("Task API not reachable at startup: %s", e.message)
        return False
    logger.info("Task API %s (version %s)", status.get("status"), status.get("version"))
    return True


async def main() -> None:
    """
    Chat front-end. Talks to the task API at API_BASE_URL; keeps only the
    locked identifier per chat in its own SQLite file.

    Only run ONE instance per bot token: a second poller gets
    TelegramConflictError.
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    token = settings.require_bot_token()

    logger.info("=" * 60)
    logger.info("Bot starting - PID: %s", os.getpid())
    logger.info("=" * 60)

    client_db_path = resolve_path(settings.client_db_path)
    logger.info("CLIENT_DB_PATH: %s", client_db_path)

    client_db = Database(str(client_db_path))
    clock = SystemClock(settings.timezone)
    await apply_migrations(client_db, now_iso=to_iso(clock.now()))

    api = HttpTaskApi(settings.api_base_url)
    logger.info("API_BASE_URL: %s", settings.api_base_url)
    await check_api(api)

    bot = Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = Dispatcher()
    registry = SessionRegistry(api=api, clock=clock, client_db=client_db, bot=bot)

    # --- middlewares ---
    dp.message.middleware(DIMiddleware(registry, clock))
    dp.callback_query.middleware(DIMiddleware(registry, clock))

    # --- routers ---
    dp.include_router(identity_router)
    dp.include_router(tasks_router)

    @dp.error(ExceptionTypeFilter(TelegramBadRequest))
    async def handle_old_callback_query(event: ErrorEvent) -> None:
        """Ignore TelegramBadRequest for old/invalid callback queries (e.g. after bot restart)."""
        msg = str(event.exception).lower()
        if "query is too old" in msg or "query id is invalid" in msg:
            logger.debug("Ignoring old/invalid callback query: %s", event.exception)
            return
        raise event.exception

    logger.info("Starting polling")
    try:
        await dp.start_polling(bot)
    finally:
        await registry.close_all()
        await api.aclose()
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
