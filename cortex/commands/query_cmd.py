"""Read-only views: search, backlinks, todos and the overview."""

from __future__ import annotations

import json
from datetime import date

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import CortexConfig
from ..stats import overview_stats
from ..todos import get_all_todos, subtask_progress, todo_stats
from ..workspace import Workspace
from .common import node_label, resolve_node, short_id

PRIORITY_STYLES = {"urgent": "bold red", "high": "red", "medium": "yellow", "low": "dim"}


def run_search(config: CortexConfig, query: str) -> int:
    console = Console()

    with Workspace.open(config) as ws:
        results = ws.search(query)

    if not results:
        console.print(f"No results for {escape(query)!r}", style="yellow")
        return 0

    table = Table(title=f"Search: {escape(query)}")
    table.add_column("id", style="dim", no_wrap=True)
    table.add_column("type", style="magenta")
    table.add_column("title", style="cyan")
    table.add_column("path", style="dim")
    for result in results:
        table.add_row(
            short_id(result.node.id),
            result.node.type,
            escape(result.node.title or "Untitled"),
            escape(result.path),
        )
    console.print(table)
    console.print(f"\n{len(results)} result(s)")
    return 0


def run_backlinks(config: CortexConfig, ref: str) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            err.print(f"Node not found: {ref}", style="bold red")
            return 1
        sources = ws.backlinks(node.id)

    if not sources:
        console.print(f"Nothing links to {escape(node.title)!r}", style="yellow")
        return 0
    for source in sources:
        console.print(node_label(source))
    return 0


def run_todos(
    config: CortexConfig,
    *,
    todo_filter: str = "all",
    sort_by: str = "priority",
    today: date | None = None,
    output_json: bool = False,
) -> int:
    console = Console()
    today = today or date.today()

    with Workspace.open(config) as ws:
        selected = ws.todos(todo_filter, sort_by, today=today)
        stats = todo_stats(get_all_todos(ws.forest), today=today)

    if output_json:
        print(json.dumps([t.to_dict() for t in selected], indent=2, ensure_ascii=False))
        return 0

    table = Table(title=f"Todos ({todo_filter}, by {sort_by})")
    table.add_column("id", style="dim", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("title")
    table.add_column("priority")
    table.add_column("due")
    table.add_column("subtasks", justify="right")
    for todo in selected:
        done, total = subtask_progress(todo)
        overdue = not todo.completed and todo.due_date is not None and todo.due_date < today
        table.add_row(
            short_id(todo.id),
            "☑" if todo.completed else "☐",
            escape(todo.title),
            f"[{PRIORITY_STYLES.get(todo.priority or '', 'dim')}]{todo.priority or '-'}[/]",
            f"[red]{todo.due_date}[/]" if overdue else (todo.due_date.isoformat() if todo.due_date else ""),
            f"{done}/{total}" if total else "",
        )
    console.print(table)
    console.print(
        f"\nOpen: {stats.total}  Due today: {stats.today}  Overdue: {stats.overdue}  Completed: {stats.completed}"
    )
    return 0


def run_stats(config: CortexConfig, *, today: date | None = None) -> int:
    console = Console()

    with Workspace.open(config) as ws:
        stats = overview_stats(ws.forest, today=today)

    table = Table(title="Overview", show_header=False)
    table.add_column("metric", style="cyan")
    table.add_column("value", justify="right")
    table.add_row("Notes", str(stats.notes))
    table.add_row("Todos", f"{stats.completed_todos}/{stats.todos} done ({stats.completion_rate}%)")
    table.add_row("Sessions", str(stats.sessions))
    table.add_row("Hours learned", f"{stats.hours_learned:.1f}")
    console.print(table)

    activity = Table(title="Last 7 days")
    activity.add_column("day")
    activity.add_column("date", style="dim")
    activity.add_column("minutes", justify="right")
    for day in stats.activity:
        activity.add_row(day.label, day.day.isoformat(), str(day.minutes))
    console.print(activity)
    return 0
