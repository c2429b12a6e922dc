"""Audit history, diagnostics and data directory setup."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..audit_log import read_audit_log
from ..config import CONFIG_FILENAME, CortexConfig, init_config
from ..diagnostics import read_diagnostics


def run_history(config: CortexConfig, *, last: int = 20, diagnostics: bool = False) -> int:
    console = Console()

    if diagnostics:
        entries = read_diagnostics(config.diagnostics_path, last_n=last)
        if not entries:
            console.print("No diagnostics recorded", style="dim")
            return 0
        table = Table(title="Diagnostics")
        table.add_column("Timestamp", style="dim", no_wrap=True)
        table.add_column("Kind", style="cyan")
        table.add_column("Message")
        for d in entries:
            table.add_row(d.timestamp[:19].replace("T", " "), d.kind.value, escape(d.message))
        console.print(table)
        return 0

    entries = read_audit_log(config.data_dir, last_n=last)
    if not entries:
        console.print("No operations recorded", style="dim")
        return 0

    table = Table(title="History")
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Operation", style="cyan", no_wrap=True)
    table.add_column("Created", justify="right")
    table.add_column("Erased", justify="right")
    table.add_column("Attached", justify="right")
    table.add_column("Details")
    for e in entries:
        details = ", ".join(f"{k}={v}" for k, v in e.metadata.items())
        table.add_row(
            e.timestamp[:19].replace("T", " "),
            e.operation,
            str(e.created.nodes or ""),
            str(e.erased.nodes or ""),
            str(e.created.attachments or ""),
            escape(details),
        )
    console.print(table)
    return 0


def run_init(config: CortexConfig) -> int:
    console = Console()
    path = config.data_dir / CONFIG_FILENAME
    existed = path.exists()
    init_config(config.data_dir)
    if existed:
        console.print(f"{path} already exists", style="yellow")
    else:
        console.print(f"Wrote {path}", style="green")
    return 0
