from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PriorityField = Literal["P0", "P1", "P2", "P3"]


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    project: Optional[str] = None
    tags: List[str] = []
    priority: PriorityField = "P2"


class TaskPatch(BaseModel):
    """Partial update; only fields present in the body are applied."""

    model_config = ConfigDict(extra="forbid")

    identifier: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    project: Optional[str] = None
    tags: Optional[List[str]] = None
    priority: Optional[PriorityField] = None
    completed: Optional[bool] = None

    def changes(self) -> dict[str, Any]:
        fields = self.model_dump(exclude_unset=True)
        fields.pop("identifier", None)
        return fields


class EnhancementPayload(BaseModel):
    todo_id: Optional[str] = None
    enhanced_description: Optional[str] = None
    steps: Optional[List[Any]] = None
