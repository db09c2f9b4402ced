from __future__ import annotations

from typing import Iterable, Optional

from todoapp.domain.tasks.models import FilterCriteria, Task
from todoapp.domain.tasks.normalize import normalize_identifier

STATUS_RANK = {"active": 0, "snoozed": 1, "completed": 2}
PRIORITY_RANK = {"P0": 0, "P1": 1, "P2": 2, "P3": 3}


def matches(task: Task, criteria: FilterCriteria) -> bool:
    """All given predicates must hold; an absent predicate imposes nothing."""
    if criteria.statuses is not None and task.status not in criteria.statuses:
        return False
    if criteria.priorities is not None and task.priority not in criteria.priorities:
        return False
    if criteria.tags:
        if not any(tag in task.tags for tag in criteria.tags):
            return False
    if criteria.project and task.project != criteria.project:
        return False
    if criteria.search:
        needle = criteria.search.lower()
        in_title = needle in task.title.lower()
        in_description = bool(task.description) and needle in task.description.lower()
        in_tags = any(needle in tag.lower() for tag in task.tags)
        if not (in_title or in_description or in_tags):
            return False
    return True


def filter_tasks(tasks: Iterable[Task], criteria: Optional[FilterCriteria]) -> list[Task]:
    if criteria is None:
        return list(tasks)
    return [t for t in tasks if matches(t, criteria)]


def sort_key(task: Task) -> tuple:
    return (
        STATUS_RANK.get(task.status, 3),
        PRIORITY_RANK.get(task.priority, 3),
        -task.updated_at.timestamp(),
    )


def sort_tasks(tasks: Iterable[Task]) -> list[Task]:
    # sorted() is stable: equal keys keep their input order
    return sorted(tasks, key=sort_key)


def owned_by(tasks: Iterable[Task], identifier: Optional[str]) -> list[Task]:
    norm = normalize_identifier(identifier)
    if not norm:
        return []
    return [t for t in tasks if normalize_identifier(t.owner_identifier) == norm]


def visible_tasks(
    tasks: Iterable[Task],
    identifier: Optional[str],
    criteria: Optional[FilterCriteria] = None,
) -> list[Task]:
    return sort_tasks(filter_tasks(owned_by(tasks, identifier), criteria))
