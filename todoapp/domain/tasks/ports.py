from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from todoapp.domain.tasks.models import Notification, TodoRecord


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class IdGenerator(ABC):
    @abstractmethod
    def new_id(self) -> str: ...


class TaskRepository(ABC):
    """Server-side storage of todo rows. Every owner-scoped call filters on id AND identifier_norm."""

    @abstractmethod
    async def insert(self, record: TodoRecord) -> TodoRecord: ...

    @abstractmethod
    async def list_by_owner(self, identifier_norm: str) -> Sequence[TodoRecord]: ...

    @abstractmethod
    async def update(
        self,
        task_id: str,
        identifier_norm: str,
        fields: Mapping[str, Any],
        updated_at_iso: str,
    ) -> Optional[TodoRecord]: ...

    @abstractmethod
    async def delete(self, task_id: str, identifier_norm: str) -> Optional[str]: ...

    @abstractmethod
    async def update_enrichment(
        self,
        task_id: str,
        fields: Mapping[str, Any],
        updated_at_iso: str,
    ) -> Optional[TodoRecord]: ...


class TaskApi(ABC):
    """Client view of the remote task API. Returns wire rows, raises ApiError / TransportError."""

    @abstractmethod
    async def list_tasks(self, identifier: str) -> list[Dict[str, Any]]: ...

    @abstractmethod
    async def create_task(self, identifier: str, fields: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def update_task(self, task_id: str, identifier: str, fields: Mapping[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def delete_task(self, task_id: str, identifier: str) -> str: ...


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self) -> Optional[str]: ...

    @abstractmethod
    async def set(self, value: str) -> None: ...

    @abstractmethod
    async def clear(self) -> None: ...


class Notifier(ABC):
    @abstractmethod
    async def notify(self, notification: Notification) -> None: ...
