from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from todoapp.constants import PRIORITIES
from todoapp.domain.common.errors import ValidationError
from todoapp.domain.tasks.normalize import normalize_identifier

MAX_TITLE_LEN = 500
MAX_DESCRIPTION_LEN = 5000
MAX_TAGS = 50

PATCHABLE_FIELDS = ("title", "description", "project", "tags", "priority", "completed")


def validate_identifier(identifier: Optional[str]) -> str:
    norm = normalize_identifier(identifier)
    if not norm:
        raise ValidationError("Identifier is required.")
    return norm


def validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title is required.")
    if len(title.strip()) > MAX_TITLE_LEN:
        raise ValidationError(f"Title is too long (max {MAX_TITLE_LEN} chars).")
    return title.strip()


def validate_description(description: Optional[str]) -> None:
    if description is not None and len(description) > MAX_DESCRIPTION_LEN:
        raise ValidationError(f"Description is too long (max {MAX_DESCRIPTION_LEN} chars).")


def validate_priority(priority: str) -> None:
    if priority not in PRIORITIES:
        raise ValidationError(f"Priority must be one of {', '.join(PRIORITIES)}.")


def validate_tags(tags: Iterable[Any]) -> list[str]:
    out = list(tags)
    if len(out) > MAX_TAGS:
        raise ValidationError(f"Too many tags (max {MAX_TAGS}).")
    for tag in out:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be strings.")
    return out


def validate_patch(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Checks a partial update and returns the subset the store may write."""
    if not fields:
        raise ValidationError("Request body cannot be empty")
    unknown = [k for k in fields if k not in PATCHABLE_FIELDS]
    if unknown:
        raise ValidationError(f"Unknown field: {unknown[0]}")

    clean: dict[str, Any] = {}
    for key, value in fields.items():
        if key == "title":
            clean[key] = validate_title(value)
        elif key == "description":
            validate_description(value)
            clean[key] = value
        elif key == "priority":
            validate_priority(value)
            clean[key] = value
        elif key == "tags":
            clean[key] = validate_tags(value or [])
        elif key == "completed":
            if not isinstance(value, bool):
                raise ValidationError("completed must be a boolean.")
            clean[key] = value
        else:
            clean[key] = value
    return clean
