from __future__ import annotations

import asyncio
import logging
import os

import uvicorn
from fastapi import FastAPI

from todoapp import __version__
from todoapp.api.app import create_app
from todoapp.config import Settings, configure_logging, load_settings, resolve_path
from todoapp.domain.common.time import to_iso
from todoapp.domain.tasks.service import TaskService
from todoapp.infra.clock.system_clock import SystemClock
from todoapp.infra.db.connection import Database
from todoapp.infra.db.repo.tasks_sqlite import TaskSqliteRepo
from todoapp.infra.db.schema_version import apply_migrations
from todoapp.infra.ids.uuid_gen import UuidGenerator

logger = logging.getLogger(__name__)


async def build_app(settings: Settings) -> FastAPI:
    db_path = resolve_path(settings.db_path)
    logger.info("DB_PATH: %s", db_path)

    db = Database(str(db_path))
    clock = SystemClock(settings.timezone)
    await apply_migrations(db, now_iso=to_iso(clock.now()))

    service = TaskService(repo=TaskSqliteRepo(db), clock=clock, ids=UuidGenerator())
    return create_app(service, signing_secret=settings.signing_secret, version=__version__)


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info("API starting - PID: %s", os.getpid())
    logger.info("=" * 60)

    app = asyncio.run(build_app(settings))
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
