# todoapp/infra/scheduler/loop.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


TickFn = Callable[[], Awaitable[Any]]


@dataclass
class PeriodicConfig:
    interval_seconds: float
    run_immediately: bool = False


class PeriodicTask:
    """
    Runs `fn` every `interval_seconds` until stopped.
    A failing tick is logged and the loop keeps going.
    """

    def __init__(self, name: str, fn: TickFn, cfg: PeriodicConfig) -> None:
        if cfg.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self._fn = fn
        self._cfg = cfg
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def config(self) -> PeriodicConfig:
        return self._cfg

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self.run_forever(), name=f"periodic:{self.name}")
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def run_forever(self) -> None:
        if self._cfg.run_immediately:
            await self.tick()
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._cfg.interval_seconds)
            except asyncio.TimeoutError:
                await self.tick()

    async def tick(self) -> None:
        try:
            await self._fn()
        except Exception as e:
            # never crash the owner of the loop because of one tick
            logger.error(f"Periodic task {self.name} tick error: {e}", exc_info=True)
