"""Tree browsing and editing commands."""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from ..config import CortexConfig
from ..models import Todo, parse_date
from ..tree.links import extract_links, resolve_link
from ..workspace import Workspace
from .common import node_label, resolve_node, short_id


def _not_found(err: Console, ref: str) -> int:
    err.print(f"Node not found: {ref}", style="bold red")
    return 1


def run_tree(config: CortexConfig, *, root: str | None = None, depth: int | None = None) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        forest = ws.forest
        start = None
        if root is not None:
            node = resolve_node(forest, root)
            if node is None:
                return _not_found(err, root)
            start = node.id

        label = forest.nodes[start].title if start is not None else "cortex"
        tree = Tree(f"[bold]{escape(label)}[/]")
        branches: dict[str, Tree] = {}
        for node, level in forest.walk(start):
            if start is not None and node.id == start:
                branches[node.id] = tree
                continue
            if depth is not None and level > depth:
                continue
            parent = branches.get(node.parent_id) if node.parent_id else tree
            if parent is None:
                continue
            branches[node.id] = parent.add(node_label(node))

    console.print(tree)
    return 0


def run_show(config: CortexConfig, ref: str, *, output_json: bool = False) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)

        if output_json:
            print(json.dumps(node.to_dict(), indent=2, ensure_ascii=False))
            return 0

        path = " / ".join(a.title or "Untitled" for a in ws.forest.ancestors(node.id))
        console.print(node_label(node))
        if path:
            console.print(f"  in {escape(path)}", style="dim")
        if node.tags:
            console.print("  tags: " + ", ".join(f"#{escape(t)}" for t in node.tags))
        if isinstance(node, Todo):
            due = node.due_date.isoformat() if node.due_date else "no date"
            console.print(f"  priority: {node.priority or '-'}  due: {due}")
            for subtask in node.subtasks:
                mark = "x" if subtask.completed else " "
                console.print(f"    \\[{mark}] {escape(subtask.title)}")

        if node.content:
            console.print()
            console.print(node.content, markup=False, highlight=False)

        links = extract_links(node.content)
        if links:
            console.print()
            console.print("Links:", style="bold")
            for title in links:
                target = resolve_link(ws.forest, title)
                if target is None:
                    console.print(f"  {escape(f'[[{title}]]')} (missing)", style="yellow")
                else:
                    console.print(f"  {escape(f'[[{title}]]')} -> {short_id(target.id)}")

        backlinks = ws.backlinks(node.id)
        if backlinks:
            console.print()
            console.print("Linked references:", style="bold")
            for source in backlinks:
                console.print(f"  {node_label(source)}")

        attachments = ws.resolve_attachments(node.id)
        if attachments:
            console.print()
            console.print("Attachments:", style="bold")
            for resolved in attachments:
                if resolved.missing:
                    console.print(f"  {resolved.ref.attachment_id} (image not found)", style="yellow")
                else:
                    a = resolved.attachment
                    console.print(f"  {resolved.ref.attachment_id} {a.media_type} {a.size} bytes")
    return 0


def _fields(
    *,
    title: str | None = None,
    content: str | None = None,
    tags: tuple[str, ...] = (),
    priority: str | None = None,
    due: str | None = None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if title is not None:
        fields["title"] = title
    if content is not None:
        fields["content"] = content
    if tags:
        fields["tags"] = list(tags)
    if priority is not None:
        fields["priority"] = priority
    if due is not None:
        fields["due_date"] = parse_date(due)
    return fields


def run_add(
    config: CortexConfig,
    node_type: str,
    title: str,
    *,
    parent: str | None = None,
    content: str | None = None,
    tags: tuple[str, ...] = (),
    priority: str | None = None,
    due: str | None = None,
) -> int:
    console = Console()
    err = Console(stderr=True)

    try:
        fields = _fields(title=title, content=content, tags=tags, priority=priority, due=due)
    except ValueError as e:
        err.print(f"Error: {e}", style="bold red")
        return 1

    with Workspace.open(config) as ws:
        parent_id = None
        if parent is not None:
            parent_node = resolve_node(ws.forest, parent)
            if parent_node is None:
                return _not_found(err, parent)
            parent_id = parent_node.id

        if node_type != "todo" and (priority is not None or due is not None):
            err.print("--priority and --due only apply to todos", style="bold red")
            return 1
        node = ws.create_node(node_type, parent_id, fields)

    console.print(f"Created {node_label(node)}", style="green")
    return 0


def run_edit(
    config: CortexConfig,
    ref: str,
    *,
    title: str | None = None,
    content: str | None = None,
    tags: tuple[str, ...] = (),
    priority: str | None = None,
    due: str | None = None,
) -> int:
    console = Console()
    err = Console(stderr=True)

    try:
        patch = _fields(title=title, content=content, tags=tags, priority=priority, due=due)
    except ValueError as e:
        err.print(f"Error: {e}", style="bold red")
        return 1
    if not patch:
        err.print("Nothing to change", style="yellow")
        return 1

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)
        updated = ws.update_node(node.id, patch)

    console.print(f"Updated {node_label(updated)}", style="green")
    return 0


def run_rm(config: CortexConfig, ref: str) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)
        count = len(ws.forest.subtree_ids(node.id))
        ws.delete_node(node.id)

    suffix = f" and {count - 1} descendant(s)" if count > 1 else ""
    console.print(f"Deleted {escape(node.title or 'Untitled')}{suffix}", style="green")
    return 0


def run_mv(config: CortexConfig, ref: str, parent: str | None = None) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)
        parent_id = None
        if parent is not None:
            parent_node = resolve_node(ws.forest, parent)
            if parent_node is None:
                return _not_found(err, parent)
            parent_id = parent_node.id

        if not ws.move_node(node.id, parent_id):
            err.print("Cannot move a node into itself or one of its descendants", style="bold red")
            return 1
        destination = ws.forest.find(parent_id).title if parent_id else "the root"

    console.print(f"Moved {escape(node.title)} to {escape(destination)}", style="green")
    return 0


def run_dup(config: CortexConfig, ref: str) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)
        clone = ws.duplicate_node(node.id)

    console.print(f"Duplicated as {node_label(clone)}", style="green")
    return 0


def run_done(config: CortexConfig, ref: str, *, undo: bool = False) -> int:
    console = Console()
    err = Console(stderr=True)

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)
        if not isinstance(node, Todo):
            err.print(f"{node.title!r} is a {node.type}, not a todo", style="bold red")
            return 1
        updated = ws.set_completed(node.id, not undo)

    console.print(("Reopened " if undo else "Completed ") + node_label(updated), style="green")
    return 0


def run_attach(config: CortexConfig, ref: str, file: Path, *, alt: str | None = None) -> int:
    console = Console()
    err = Console(stderr=True)

    data = file.read_bytes()
    media_type = mimetypes.guess_type(file.name)[0] or "application/octet-stream"

    with Workspace.open(config) as ws:
        node = resolve_node(ws.forest, ref)
        if node is None:
            return _not_found(err, ref)
        attachment_id = ws.attach(node.id, data, alt if alt is not None else file.stem, media_type)

    if attachment_id is None:
        err.print(f"Failed to store {file.name}; see diagnostics.log", style="bold red")
        return 1
    console.print(f"Attached {escape(file.name)} as image:{attachment_id}", style="green")
    return 0
