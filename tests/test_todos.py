"""Tests for the todo filters, sort modes and counts."""

from datetime import date

import pytest

from cortex.models import Todo
from cortex.todos import (
    add_subtask,
    completion_patch,
    filter_todos,
    get_all_todos,
    remove_subtask,
    sort_todos,
    subtask_progress,
    todo_stats,
    toggle_subtask,
)
from cortex.tree.forest import Forest
from cortex.tree.store import create_node, update_node

TODAY = date(2024, 5, 10)


def _todo(title: str, **fields) -> Todo:
    return Todo(id=title, title=title, **fields)


@pytest.fixture
def todos() -> list[Todo]:
    return [
        _todo("undated"),
        _todo("today", due_date=TODAY),
        _todo("late", due_date=date(2024, 5, 1)),
        _todo("later", due_date=date(2024, 6, 1)),
        _todo("finished", due_date=date(2024, 5, 1), completed=True),
    ]


def _titles(items):
    return [t.title for t in items]


def test_no_date_example() -> None:
    forest, todo = create_node(Forest(), "todo", None, {"title": "someday"})
    all_todos = get_all_todos(forest)
    assert todo in filter_todos(all_todos, "no-date", today=TODAY)
    assert filter_todos(all_todos, "today", today=TODAY) == []
    assert filter_todos(all_todos, "overdue", today=TODAY) == []


@pytest.mark.parametrize(
    "todo_filter, expected",
    [
        ("all", ["undated", "today", "late", "later"]),
        ("completed", ["finished"]),
        ("today", ["today"]),
        ("overdue", ["late"]),
        ("upcoming", ["later"]),
        ("no-date", ["undated"]),
    ],
)
def test_filters(todos, todo_filter, expected) -> None:
    assert _titles(filter_todos(todos, todo_filter, today=TODAY)) == expected


def test_unknown_filter_raises(todos) -> None:
    with pytest.raises(ValueError):
        filter_todos(todos, "someday", today=TODAY)


def test_priority_sort_puts_urgent_first() -> None:
    urgent = _todo("urgent", priority="urgent")
    low = _todo("low", priority="low", due_date=date(2099, 1, 1))
    assert _titles(sort_todos([low, urgent], "priority")) == ["urgent", "low"]


def test_priority_ties_break_by_due_date_undated_last() -> None:
    items = [
        _todo("none"),
        _todo("high-undated", priority="high"),
        _todo("high-late", priority="high", due_date=date(2024, 9, 1)),
        _todo("high-soon", priority="high", due_date=date(2024, 6, 1)),
    ]
    assert _titles(sort_todos(items, "priority")) == ["high-soon", "high-late", "high-undated", "none"]


def test_date_and_created_sort(todos) -> None:
    assert _titles(sort_todos(todos, "date"))[-1] == "undated"
    assert _titles(sort_todos(todos, "date"))[0] in ("late", "finished")

    old = _todo("old", created_at=1)
    new = _todo("new", created_at=2)
    assert _titles(sort_todos([old, new], "created")) == ["new", "old"]


def test_sort_does_not_mutate_input(todos) -> None:
    before = list(todos)
    sort_todos(todos, "date")
    assert todos == before


def test_stats(todos) -> None:
    stats = todo_stats(todos, today=TODAY)
    assert (stats.total, stats.completed, stats.overdue, stats.today) == (4, 1, 1, 1)


def test_completion_patch_round_trip() -> None:
    forest, todo = create_node(Forest(), "todo", None, {"title": "t"})
    forest = update_node(forest, todo.id, completion_patch(True, 42))
    assert forest.find(todo.id).completed is True
    assert forest.find(todo.id).completed_at == 42
    forest = update_node(forest, todo.id, completion_patch(False, 43))
    assert forest.find(todo.id).completed_at is None


def test_subtask_helpers() -> None:
    forest, todo = create_node(Forest(), "todo", None, {"title": "t"})
    forest = update_node(forest, todo.id, add_subtask(forest.find(todo.id), "  step one "))
    forest = update_node(forest, todo.id, add_subtask(forest.find(todo.id), "step two"))
    todo = forest.find(todo.id)
    assert [s.title for s in todo.subtasks] == ["step one", "step two"]

    first = todo.subtasks[0]
    forest = update_node(forest, todo.id, toggle_subtask(todo, first.id))
    assert subtask_progress(forest.find(todo.id)) == (1, 2)

    forest = update_node(forest, todo.id, remove_subtask(forest.find(todo.id), first.id))
    assert subtask_progress(forest.find(todo.id)) == (0, 1)
