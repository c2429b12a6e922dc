"""Markdown export command."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ..config import CortexConfig
from ..export import to_markdown, write_markdown
from ..workspace import Workspace
from .common import resolve_node


def run_export(config: CortexConfig, ref: str, *, out: Path | None = None) -> int:
    """Write one node as Markdown into ``out``, or print it when no directory is given."""
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            err.print(f"Node not found: {ref}", style="bold red")
            return 1

    if out is None:
        print(to_markdown(node))
        return 0

    path = write_markdown(node, out)
    err.print(f"Wrote {path}", style="green")
    return 0
