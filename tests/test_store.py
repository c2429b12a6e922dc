"""Tests for the copy-on-write tree operations."""

import pytest

from cortex.diagnostics import DiagnosticKind
from cortex.models import Folder, Note, Session, Todo
from cortex.tree.forest import Forest
from cortex.tree.store import (
    COPY_SUFFIX,
    check_move,
    create_node,
    delete_node,
    duplicate_node,
    move_node,
    update_node,
)


def test_create_applies_defaults() -> None:
    forest, todo = create_node(Forest(), "todo", None, {"title": "Call"}, now=5_000)
    assert isinstance(todo, Todo)
    assert forest.find(todo.id) == todo
    assert todo.completed is False
    assert todo.priority == "medium"
    assert todo.children == ()
    assert todo.created_at == todo.updated_at == 5_000
    assert forest.root_ids == (todo.id,)

    _, session = create_node(Forest(), "session")
    assert isinstance(session, Session)
    assert session.title == "Learning Session"


def test_create_appends_to_parent(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    forest, note = create_node(sample_forest, "note", work.id, {"title": "Notes"}, now=10_000)
    assert [c.title for c in forest.children(work.id)] == ["Plan", "Notes"]
    assert note.parent_id == work.id
    assert forest.find(work.id).updated_at == 10_000


def test_create_under_missing_parent_is_noop(sample_forest: Forest) -> None:
    forest, node = create_node(sample_forest, "note", "missing", {"title": "x"})
    assert node is None
    assert forest is sample_forest


def test_create_rejects_unknown_type() -> None:
    with pytest.raises(ValueError, match="Unknown node type"):
        create_node(Forest(), "widget")


def test_create_ignores_structural_and_foreign_fields() -> None:
    forest, note = create_node(
        Forest(), "note", None, {"title": "N", "id": "forced", "children": ["x"], "priority": "high"}
    )
    assert isinstance(note, Note)
    assert note.id != "forced"
    assert note.children == ()
    assert not hasattr(note, "priority")


def test_create_does_not_touch_input(sample_forest: Forest) -> None:
    before = sample_forest.to_records()
    create_node(sample_forest, "note", sample_forest.find_by_title("Work").id, {"title": "New"})
    assert sample_forest.to_records() == before


def test_update_merges_and_advances_updated_at(sample_forest: Forest) -> None:
    plan = sample_forest.find_by_title("Plan")
    forest = update_node(sample_forest, plan.id, {"title": "Plan v2"}, now=plan.updated_at)
    updated = forest.find(plan.id)
    assert updated.title == "Plan v2"
    assert updated.content == plan.content
    assert updated.created_at == plan.created_at
    assert updated.updated_at > plan.updated_at
    assert sample_forest.find(plan.id).title == "Plan"


def test_update_missing_is_noop(sample_forest: Forest) -> None:
    assert update_node(sample_forest, "missing", {"title": "x"}) is sample_forest


def test_update_skips_invalid_values() -> None:
    forest, todo = create_node(Forest(), "todo", None, {"title": "t", "due_date": "2024-05-01"})
    forest = update_node(forest, todo.id, {"priority": "someday", "due_date": "soon", "title": "renamed"})
    updated = forest.find(todo.id)
    assert updated.title == "renamed"
    assert updated.priority == "medium"
    assert updated.due_date == todo.due_date


def test_create_skips_invalid_values() -> None:
    forest, todo = create_node(Forest(), "todo", None, {"title": "t", "priority": "someday"})
    assert todo.priority == "medium"
    assert forest.find(todo.id) == todo


def test_delete_removes_subtree(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    plan = sample_forest.find_by_title("Plan")
    forest = delete_node(sample_forest, work.id)
    assert work.id not in forest
    assert plan.id not in forest
    assert [n.title for n in forest.flatten()] == ["Budget"]


def test_delete_child_updates_parent_sequence(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    plan = sample_forest.find_by_title("Plan")
    forest = delete_node(sample_forest, plan.id, now=99_000)
    assert forest.find(work.id).children == ()
    assert forest.find(work.id).updated_at == 99_000


def test_delete_missing_is_noop(sample_forest: Forest) -> None:
    assert delete_node(sample_forest, "missing") is sample_forest


def test_duplicate_inserts_adjacent_copy(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    forest = duplicate_node(sample_forest, work.id, now=50_000)

    assert len(forest.root_ids) == 3
    assert forest.root_ids[0] == work.id
    clone = forest.find(forest.root_ids[1])
    assert clone.id != work.id
    assert clone.title == "Work" + COPY_SUFFIX
    assert clone.created_at == 50_000

    (child_id,) = clone.children
    child = forest.find(child_id)
    assert child.title == "Plan" + COPY_SUFFIX
    assert child.parent_id == clone.id
    assert child.content == "See [[Budget]]"
    assert child_id != sample_forest.find_by_title("Plan").id


def test_duplicate_child_keeps_sibling_order(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    plan = sample_forest.find_by_title("Plan")
    forest, notes = create_node(sample_forest, "note", work.id, {"title": "Notes"})
    forest = duplicate_node(forest, plan.id)
    titles = [c.title for c in forest.children(work.id)]
    assert titles == ["Plan", "Plan (Copy)", "Notes"]


def test_move_into_descendant_is_rejected(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    plan = sample_forest.find_by_title("Plan")
    assert check_move(sample_forest, work.id, plan.id) is DiagnosticKind.INVALID_MOVE
    assert check_move(sample_forest, work.id, work.id) is DiagnosticKind.INVALID_MOVE

    assert move_node(sample_forest, work.id, plan.id) is sample_forest
    assert move_node(sample_forest, work.id, work.id) is sample_forest


def test_move_missing_is_noop(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    assert check_move(sample_forest, "missing", None) is DiagnosticKind.NOT_FOUND
    assert check_move(sample_forest, work.id, "missing") is DiagnosticKind.NOT_FOUND
    assert move_node(sample_forest, work.id, "missing") is sample_forest


def test_move_reparents_as_last_child(sample_forest: Forest) -> None:
    work = sample_forest.find_by_title("Work")
    budget = sample_forest.find_by_title("Budget")
    forest = move_node(sample_forest, budget.id, work.id, now=70_000)

    assert forest.root_ids == (work.id,)
    assert [c.title for c in forest.children(work.id)] == ["Plan", "Budget"]
    assert forest.find(budget.id).parent_id == work.id

    forest = move_node(forest, budget.id, None)
    assert forest.root_ids == (work.id, budget.id)
    assert forest.find(budget.id).parent_id is None


def test_move_folder_under_todo_is_allowed(sample_forest: Forest) -> None:
    forest, todo = create_node(sample_forest, "todo", None, {"title": "T"})
    work = forest.find_by_title("Work")
    moved = move_node(forest, work.id, todo.id)
    assert isinstance(moved.find(work.id), Folder)
    assert moved.find(work.id).parent_id == todo.id
