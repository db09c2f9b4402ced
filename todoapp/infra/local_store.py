from __future__ import annotations

from typing import Optional

from todoapp.constants import IDENTIFIER_STORAGE_KEY
from todoapp.domain.common.time import to_iso, utc_now
from todoapp.domain.tasks.ports import KeyValueStore
from todoapp.infra.db.connection import Database


class IdentifierStore(KeyValueStore):
    """The locked identifier of one client (scope), kept across restarts."""

    def __init__(self, db: Database, scope: str, key: str = IDENTIFIER_STORAGE_KEY) -> None:
        self._db = db
        self._scope = scope
        self._key = key

    async def get(self) -> Optional[str]:
        row = await self._db.fetchone(
            "SELECT value FROM client_settings WHERE scope = ? AND key = ?;",
            (self._scope, self._key),
        )
        return row["value"] if row else None

    async def set(self, value: str) -> None:
        await self._db.execute(
            """
            INSERT INTO client_settings(scope, key, value, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(scope, key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at;
            """,
            (self._scope, self._key, value, to_iso(utc_now())),
        )

    async def clear(self) -> None:
        await self._db.execute(
            "DELETE FROM client_settings WHERE scope = ? AND key = ?;",
            (self._scope, self._key),
        )
