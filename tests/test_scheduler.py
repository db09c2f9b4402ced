"""
PeriodicTask: immediate first run, repetition, stop, and tick failure isolation.

Run with: python -m pytest tests/test_scheduler.py -v
"""
from __future__ import annotations

import asyncio
import logging

import pytest

from todoapp.infra.scheduler.loop import PeriodicConfig, PeriodicTask


def test_runs_immediately_then_repeats_until_stopped():
    async def run():
        calls = []

        async def fn():
            calls.append(1)

        task = PeriodicTask("t", fn, PeriodicConfig(interval_seconds=0.01, run_immediately=True))
        task.start()
        await asyncio.sleep(0)
        assert len(calls) == 1
        await asyncio.sleep(0.05)
        await task.stop()
        assert not task.running
        seen = len(calls)
        await asyncio.sleep(0.03)
        assert len(calls) == seen >= 2

    asyncio.run(run())


def test_without_run_immediately_waits_one_interval():
    async def run():
        calls = []

        async def fn():
            calls.append(1)

        task = PeriodicTask("t", fn, PeriodicConfig(interval_seconds=10))
        task.start()
        await asyncio.sleep(0.01)
        await task.stop()
        assert calls == []

    asyncio.run(run())


def test_failing_tick_is_logged_and_loop_survives(caplog):
    async def run():
        calls = []

        async def fn():
            calls.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("failing", fn, PeriodicConfig(interval_seconds=0.01, run_immediately=True))
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()
        return calls

    with caplog.at_level(logging.ERROR, logger="todoapp.infra.scheduler.loop"):
        calls = asyncio.run(run())
    assert len(calls) >= 2
    assert "Periodic task failing tick error: boom" in caplog.text


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicTask("t", lambda: None, PeriodicConfig(interval_seconds=0))
