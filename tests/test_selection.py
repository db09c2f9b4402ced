"""
Selection, focus and edit state.

Run with: python -m pytest tests/test_selection.py -v
"""
from __future__ import annotations

from datetime import datetime, timezone

from todoapp.domain.tasks.models import Task
from todoapp.domain.tasks.selection import SelectionState

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _task(task_id, status="active"):
    return Task(
        id=task_id,
        title=task_id,
        owner_identifier="alice",
        priority="P2",
        status=status,
        completed=status == "completed",
        created_at=NOW,
        updated_at=NOW,
    )


def test_single_select_replaces_and_reselect_clears():
    sel = SelectionState()
    sel.select("a")
    sel.select("b")
    assert sel.selected_ids == ["b"]
    sel.select("b")
    assert sel.selected_ids == []


def test_multi_select_toggles_membership_in_order():
    sel = SelectionState()
    sel.select("a", multi=True)
    sel.select("c", multi=True)
    sel.select("b", multi=True)
    sel.select("c", multi=True)
    assert sel.selected_ids == ["a", "b"]


def test_single_select_within_a_multi_selection_narrows_it():
    sel = SelectionState()
    sel.select("a", multi=True)
    sel.select("b", multi=True)
    sel.select("a")
    assert sel.selected_ids == ["a"]


def test_select_all_takes_active_tasks_only():
    sel = SelectionState()
    sel.select_all([_task("a"), _task("b", status="completed"), _task("c", status="snoozed"), _task("d")])
    assert sel.selected_ids == ["a", "d"]


def test_prune_drops_missing_ids_and_resets_focus_and_edit():
    sel = SelectionState()
    sel.select("a", multi=True)
    sel.select("b", multi=True)
    sel.focus("b")
    sel.begin_edit("b")
    sel.prune(["a"])
    assert sel.selected_ids == ["a"]
    assert sel.focused_id is None
    assert sel.editing_id is None


def test_focus_moves_with_wrap_around():
    sel = SelectionState()
    ids = ["a", "b", "c"]
    assert sel.focus_next(ids) == "a"
    assert sel.focus_next(ids) == "b"
    assert sel.focus_previous(ids) == "a"
    assert sel.focus_previous(ids) == "c"
    assert sel.focus_next(ids) == "a"
    assert sel.focus_next([]) is None


def test_edit_lifecycle():
    sel = SelectionState()
    sel.begin_edit("a")
    assert sel.editing_id == "a"
    assert sel.finish_edit() == "a"
    assert sel.editing_id is None
    sel.begin_edit("b")
    sel.cancel_edit()
    assert sel.finish_edit() is None
