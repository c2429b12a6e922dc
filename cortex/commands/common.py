"""Helpers shared by the command modules."""

from __future__ import annotations

from rich.markup import escape

from ..models import KnowledgeNode, Todo
from ..tree.forest import Forest

TYPE_ICONS = {"folder": "📁", "note": "📝", "todo": "☐", "session": "⏱"}

SHORT_ID_LENGTH = 8


def resolve_node(forest: Forest, ref: str) -> KnowledgeNode | None:
    """Look a node up by id, unique id prefix, or title (first match)."""
    if not ref:
        return None
    node = forest.find(ref)
    if node is not None:
        return node
    matches = [nid for nid in forest.nodes if nid.startswith(ref)]
    if len(matches) == 1:
        return forest.nodes[matches[0]]
    return forest.find_by_title(ref)


def short_id(node_id: str) -> str:
    return node_id[:SHORT_ID_LENGTH]


def node_label(node: KnowledgeNode) -> str:
    """Rich markup label: icon, title and short id."""
    icon = TYPE_ICONS.get(node.type, "•")
    if isinstance(node, Todo) and node.completed:
        icon = "☑"
    title = escape(node.title) if node.title else "[italic]Untitled[/]"
    if isinstance(node, Todo) and node.completed:
        title = f"[strike]{title}[/]"
    return f"{icon} {title} [dim]{short_id(node.id)}[/]"


def format_duration(seconds: int) -> str:
    """``[h:]mm:ss`` clock display."""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    prefix = f"{hours}:" if hours > 0 else ""
    return f"{prefix}{minutes:02d}:{secs:02d}"
