"""Quick capture: inbox todos and the daily journal."""

from __future__ import annotations

from datetime import date

from rich.console import Console

from ..config import CortexConfig
from ..workspace import Workspace
from .common import node_label


def run_quick_add(config: CortexConfig, title: str, *, due_today: bool = False, today: date | None = None) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        todo = ws.quick_add_todo(title, due_today=due_today, today=today)
        if todo is None:
            err.print("Title must not be empty", style="bold red")
            return 1
        parent = ws.forest.parent(todo.id)

    where = parent.title if parent is not None else "the root"
    console.print(f"Added {node_label(todo)} to {where}", style="green")
    return 0


def run_journal(config: CortexConfig, *, today: date | None = None) -> int:
    console = Console()

    with Workspace.open(config) as ws:
        note = ws.open_daily_journal(today)

    console.print(node_label(note))
    console.print(note.content, markup=False, highlight=False)
    return 0
