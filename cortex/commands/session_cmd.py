"""Focus session commands.

The timer lives in the saved state, so ``start`` and ``stop`` may run in
different invocations; elapsed time is recomputed from the start time.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from ..config import CortexConfig
from ..workspace import Workspace
from .common import format_duration, node_label, resolve_node


def run_session_start(config: CortexConfig, *, link: str | None = None) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        linked_id = None
        if link is not None:
            node = resolve_node(ws.forest, link)
            if node is None:
                err.print(f"Node not found: {link}", style="bold red")
                return 1
            linked_id = node.id
        was_active = ws.state.session.is_active
        session = ws.start_session(linked_id)
        linked = ws.forest.find(session.linked_node_id) if session.linked_node_id else None

    if was_active:
        console.print("Session already running", style="yellow")
    elif session.elapsed:
        console.print(f"Resumed at {format_duration(session.elapsed)}", style="green")
    else:
        console.print("Session started", style="green")
    if linked is not None:
        console.print(f"  linked to {escape(linked.title)}", style="dim")
    return 0


def run_session_pause(config: CortexConfig) -> int:
    console = Console()

    with Workspace.open(config) as ws:
        session = ws.pause_session()

    console.print(f"Paused at {format_duration(session.elapsed)}")
    return 0


def run_session_status(config: CortexConfig) -> int:
    console = Console()

    with Workspace.open(config) as ws:
        elapsed = ws.tick()
        session = ws.state.session

    if not session.is_active and elapsed == 0:
        console.print("No session", style="dim")
        return 0
    state = "running" if session.is_active else "paused"
    console.print(f"Focus {format_duration(elapsed)} ({state})")
    return 0


def run_session_stop(config: CortexConfig) -> int:
    console = Console()

    with Workspace.open(config) as ws:
        record = ws.stop_session()

    if record is None:
        console.print("No session to stop", style="yellow")
        return 0
    console.print(f"Recorded {node_label(record)}", style="green")
    return 0
