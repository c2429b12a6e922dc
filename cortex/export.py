"""Markdown export of a single node.

The file carries YAML front matter (via python-frontmatter) followed by the
node's title as a heading and its content:

    ---
    id: 5f0c...
    title: Plan
    type: note
    created: '2024-01-01T09:00:00.000Z'
    updated: '2024-01-01T09:00:00.000Z'
    tags:
    - work
    ---

    # Plan

    ...
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import frontmatter

from .models import KnowledgeNode, Todo

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def iso_timestamp(epoch_ms: int) -> str:
    """Epoch millis as UTC ISO-8601 with millisecond precision and a Z suffix."""
    moment = _EPOCH + timedelta(milliseconds=epoch_ms)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def export_metadata(node: KnowledgeNode) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "id": node.id,
        "title": node.title,
        "type": node.type,
        "created": iso_timestamp(node.created_at),
        "updated": iso_timestamp(node.updated_at),
        "tags": list(node.tags),
    }
    if isinstance(node, Todo):
        metadata["completed"] = node.completed
        if node.priority:
            metadata["priority"] = node.priority
        if node.due_date is not None:
            metadata["due"] = node.due_date.isoformat()
    return metadata


def to_markdown(node: KnowledgeNode) -> str:
    """Front matter, then the title heading, then the content unchanged."""
    header = frontmatter.dumps(frontmatter.Post("", **export_metadata(node)), sort_keys=False)
    return f"{header.rstrip()}\n\n# {node.title}\n\n{node.content}"


def export_filename(title: str) -> str:
    """Lowercase file name with every non-alphanumeric char replaced by ``_``."""
    stem = _UNSAFE_FILENAME_CHARS.sub("_", title).lower()
    return f"{stem or 'untitled'}.md"


def write_markdown(node: KnowledgeNode, directory: Path) -> Path:
    """Write the node's Markdown export into ``directory`` and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(node.title)
    path.write_text(to_markdown(node), encoding="utf-8")
    return path
