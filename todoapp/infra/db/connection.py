from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import aiosqlite


class Database:
    """
    Async SQLite helper:
    - one short-lived connection per operation
    - rows come back as aiosqlite.Row (mapping access by column name)
    - WAL journal, set once when the schema is applied
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            yield db

    async def executescript(self, sql: str) -> None:
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.executescript(sql)
            await db.commit()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Runs a write and returns the number of affected rows."""
        async with self._connect() as db:
            cur = await db.execute(sql, params)
            await db.commit()
            return cur.rowcount

    async def execute_returning(self, sql: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        """Runs a write with a RETURNING clause and commits it."""
        async with self._connect() as db:
            cur = await db.execute(sql, params)
            row = await cur.fetchone()
            await db.commit()
            return row

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self._connect() as db:
            cur = await db.execute(sql, params)
            return await cur.fetchone()

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        async with self._connect() as db:
            cur = await db.execute(sql, params)
            return list(await cur.fetchall())
