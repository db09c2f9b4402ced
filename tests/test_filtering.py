"""
Filter/sort engine: predicates, composite ordering, owner scoping.

Run with: python -m pytest tests/test_filtering.py -v
"""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

from todoapp.domain.tasks.filtering import filter_tasks, owned_by, sort_key, sort_tasks, visible_tasks
from todoapp.domain.tasks.models import DEFAULT_VIEW, FilterCriteria, Task

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _task(task_id, status="active", priority="P2", minutes_ago=0, owner="alice", **kw):
    stamp = NOW - timedelta(minutes=minutes_ago)
    return Task(
        id=task_id,
        title=kw.pop("title", f"Task {task_id}"),
        owner_identifier=owner,
        priority=priority,
        status=status,
        completed=status == "completed",
        created_at=stamp,
        updated_at=stamp,
        completed_at=stamp if status == "completed" else None,
        **kw,
    )


def test_sort_orders_status_then_priority_then_recency():
    tasks = [
        _task("c", status="completed", priority="P0"),
        _task("s", status="snoozed", priority="P0"),
        _task("a-old", priority="P1", minutes_ago=30),
        _task("a-new", priority="P1", minutes_ago=5),
        _task("a-urgent", priority="P0", minutes_ago=60),
    ]
    ordered = [t.id for t in sort_tasks(tasks)]
    assert ordered == ["a-urgent", "a-new", "a-old", "s", "c"]


def test_sort_is_a_total_preorder_on_random_input():
    rng = random.Random(7)
    tasks = [
        _task(
            str(i),
            status=rng.choice(["active", "snoozed", "completed"]),
            priority=rng.choice(["P0", "P1", "P2", "P3"]),
            minutes_ago=rng.randint(0, 5),
        )
        for i in range(60)
    ]
    ordered = sort_tasks(tasks)
    keys = [sort_key(t) for t in ordered]
    assert keys == sorted(keys)
    assert sorted(t.id for t in ordered) == sorted(t.id for t in tasks)


def test_sort_is_stable_and_does_not_touch_input():
    tasks = [_task("x"), _task("y"), _task("z")]
    before = list(tasks)
    assert [t.id for t in sort_tasks(tasks)] == ["x", "y", "z"]
    assert tasks == before


def test_empty_status_set_excludes_everything():
    tasks = [_task("a"), _task("b", status="completed")]
    assert filter_tasks(tasks, FilterCriteria(statuses=frozenset())) == []


def test_default_view_hides_completed():
    tasks = [_task("a"), _task("s", status="snoozed"), _task("c", status="completed")]
    assert {t.id for t in filter_tasks(tasks, DEFAULT_VIEW)} == {"a", "s"}


def test_tag_filter_is_intersection():
    tasks = [_task("a", tags=("home",)), _task("b", tags=("work", "urgent")), _task("c")]
    result = filter_tasks(tasks, FilterCriteria(tags=("urgent", "garden")))
    assert [t.id for t in result] == ["b"]


def test_search_covers_title_description_and_tags_case_insensitively():
    tasks = [
        _task("t", title="Buy MILK"),
        _task("d", description="remember the milk"),
        _task("g", tags=("Milkshake",)),
        _task("n", title="Other"),
    ]
    result = filter_tasks(tasks, FilterCriteria(search="milk"))
    assert {t.id for t in result} == {"t", "d", "g"}


def test_project_and_priority_predicates_combine():
    tasks = [
        _task("a", priority="P0", project="home"),
        _task("b", priority="P0", project="work"),
        _task("c", priority="P3", project="home"),
    ]
    result = filter_tasks(tasks, FilterCriteria(priorities=frozenset({"P0"}), project="home"))
    assert [t.id for t in result] == ["a"]


def test_filtering_is_a_subset_and_idempotent():
    tasks = [_task(str(i), status=s) for i, s in enumerate(["active", "completed", "snoozed"] * 4)]
    criteria = FilterCriteria(statuses=frozenset({"active", "completed"}))
    once = filter_tasks(tasks, criteria)
    assert all(t in tasks for t in once)
    assert filter_tasks(once, criteria) == once


def test_owner_scoping_is_case_insensitive_and_needs_an_identifier():
    tasks = [_task("a", owner="Alice@Example.com"), _task("b", owner="bob")]
    assert [t.id for t in owned_by(tasks, " alice@example.com ")] == ["a"]
    assert owned_by(tasks, None) == []
    assert owned_by(tasks, "   ") == []


def test_visible_tasks_scopes_filters_and_sorts():
    tasks = [
        _task("a", owner="alice", priority="P3"),
        _task("b", owner="alice", priority="P0"),
        _task("c", owner="bob", priority="P0"),
        _task("d", owner="alice", status="completed"),
    ]
    assert [t.id for t in visible_tasks(tasks, "alice", DEFAULT_VIEW)] == ["b", "a"]


def test_adding_a_predicate_never_grows_the_result():
    tasks = [
        _task("a", priority="P0", tags=("home",), title="milk"),
        _task("b", priority="P1", tags=("work",), project="x"),
        _task("c", status="completed", priority="P0", description="milk run"),
        _task("d", status="snoozed", priority="P3"),
    ]
    steps = [
        FilterCriteria(),
        FilterCriteria(statuses=frozenset({"active", "completed"})),
        FilterCriteria(statuses=frozenset({"active", "completed"}), priorities=frozenset({"P0"})),
        FilterCriteria(statuses=frozenset({"active", "completed"}), priorities=frozenset({"P0"}), search="milk"),
        FilterCriteria(
            statuses=frozenset({"active", "completed"}), priorities=frozenset({"P0"}), search="milk", tags=("home",)
        ),
    ]
    sizes = [len(filter_tasks(tasks, c)) for c in steps]
    assert sizes == sorted(sizes, reverse=True)
    assert sizes == [4, 3, 2, 2, 1]
