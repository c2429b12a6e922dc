"""Filter, sort and count views over todo nodes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Iterable, Literal

from .models import Subtask, Todo
from .tree.forest import Forest
from .util import new_id

TodoFilter = Literal["all", "completed", "today", "overdue", "upcoming", "no-date"]
SortMode = Literal["priority", "date", "created"]

TODO_FILTERS: tuple[str, ...] = ("all", "completed", "today", "overdue", "upcoming", "no-date")
SORT_MODES: tuple[str, ...] = ("priority", "date", "created")

PRIORITY_WEIGHTS = {"urgent": 4, "high": 3, "medium": 2, "low": 1}

# Undated todos sort after every dated one.
SENTINEL_DATE = date.max


@dataclass(frozen=True)
class TodoStats:
    total: int  # incomplete
    completed: int
    overdue: int
    today: int


def get_all_todos(forest: Forest) -> list[Todo]:
    """Every todo in the forest, pre-order."""
    return [node for node in forest if isinstance(node, Todo)]


def _matches(todo: Todo, todo_filter: str, today: date) -> bool:
    if todo_filter == "completed":
        return todo.completed
    if todo.completed:
        return False
    due = todo.due_date
    if todo_filter == "all":
        return True
    if todo_filter == "today":
        return due == today
    if todo_filter == "overdue":
        return due is not None and due < today
    if todo_filter == "upcoming":
        return due is not None and due > today
    # no-date
    return due is None


def filter_todos(todos: Iterable[Todo], todo_filter: str, *, today: date | None = None) -> list[Todo]:
    """Todos matching one filter, against the local calendar date.

    ``all`` means every incomplete todo; the date filters also only see
    incomplete todos.
    """
    if todo_filter not in TODO_FILTERS:
        raise ValueError(f"Unknown todo filter: {todo_filter}")
    today = today or date.today()
    return [t for t in todos if _matches(t, todo_filter, today)]


def priority_weight(priority: str | None) -> int:
    return PRIORITY_WEIGHTS.get(priority or "", 0)


def sort_todos(todos: Iterable[Todo], sort_by: str) -> list[Todo]:
    """Sorted copy.

    priority: heaviest first, then earliest due date, undated last.
    date: earliest due date first, undated last.
    created: newest first.
    """
    if sort_by == "priority":
        key: Any = lambda t: (-priority_weight(t.priority), t.due_date or SENTINEL_DATE)
    elif sort_by == "date":
        key = lambda t: t.due_date or SENTINEL_DATE
    elif sort_by == "created":
        key = lambda t: -t.created_at
    else:
        raise ValueError(f"Unknown sort mode: {sort_by}")
    return sorted(todos, key=key)


def todo_stats(todos: Iterable[Todo], *, today: date | None = None) -> TodoStats:
    today = today or date.today()
    todos = list(todos)
    return TodoStats(
        total=sum(1 for t in todos if not t.completed),
        completed=sum(1 for t in todos if t.completed),
        overdue=sum(1 for t in todos if _matches(t, "overdue", today)),
        today=sum(1 for t in todos if _matches(t, "today", today)),
    )


# -----------------------------------------------------------------------------
# Patch helpers (feed the results to update_node)
# -----------------------------------------------------------------------------


def completion_patch(completed: bool, now: int) -> dict[str, Any]:
    return {"completed": completed, "completed_at": now if completed else None}


def add_subtask(todo: Todo, title: str) -> dict[str, Any]:
    subtask = Subtask(id=new_id(), title=title.strip())
    return {"subtasks": todo.subtasks + (subtask,)}


def toggle_subtask(todo: Todo, subtask_id: str) -> dict[str, Any]:
    return {
        "subtasks": tuple(
            replace(s, completed=not s.completed) if s.id == subtask_id else s for s in todo.subtasks
        )
    }


def remove_subtask(todo: Todo, subtask_id: str) -> dict[str, Any]:
    return {"subtasks": tuple(s for s in todo.subtasks if s.id != subtask_id)}


def subtask_progress(todo: Todo) -> tuple[int, int]:
    """(done, total) subtask counts."""
    return sum(1 for s in todo.subtasks if s.completed), len(todo.subtasks)
