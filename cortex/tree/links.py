"""Wiki-link and attachment-reference parsing over node content."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models import KnowledgeNode
from .forest import Forest

# Match [[Title]]
WIKILINK_PATTERN = re.compile(r"\[\[([^\[\]]+)\]\]")

# Match image:<id>, optionally wrapped as ![alt](image:<id>)
ATTACHMENT_TOKEN_PREFIX = "image:"
IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(image:([^)\s]+)\)")
ATTACHMENT_PATTERN = re.compile(r"image:([A-Za-z0-9_-]+)")


@dataclass(frozen=True)
class AttachmentRef:
    attachment_id: str
    alt: str = ""


def extract_links(content: str) -> list[str]:
    """Extract all wiki-link titles from content.

    Titles keep their spelling; duplicates differing only in case are
    dropped, first occurrence wins.
    """
    seen = set()
    result = []
    for match in WIKILINK_PATTERN.findall(content):
        title = match.strip()
        key = title.casefold()
        if title and key not in seen:
            seen.add(key)
            result.append(title)
    return result


def backlink_pattern(target_title: str) -> re.Pattern[str]:
    """Case-insensitive pattern matching ``[[target_title]]`` literally."""
    return re.compile(r"\[\[" + re.escape(target_title) + r"\]\]", re.IGNORECASE)


def find_backlinks(
    target_title: str,
    forest: Forest,
    *,
    exclude_id: str | None = None,
) -> list[KnowledgeNode]:
    """Nodes (pre-order) whose content links to ``target_title``.

    Matching is textual: links follow the title string, not a node id, so a
    rename orphans links written against the old title. Pass ``exclude_id``
    to leave out the target node itself; titles may repeat, so exclusion
    must go by id.
    """
    if not target_title:
        return []
    pattern = backlink_pattern(target_title)
    return [
        node
        for node in forest
        if node.id != exclude_id and node.content and pattern.search(node.content)
    ]


def backlinks_for(forest: Forest, node_id: str) -> list[KnowledgeNode]:
    """Backlinks to a node's current title, excluding the node itself."""
    node = forest.find(node_id)
    if node is None:
        return []
    return find_backlinks(node.title, forest, exclude_id=node.id)


def resolve_link(forest: Forest, title: str) -> KnowledgeNode | None:
    """Target of ``[[title]]``: first node in pre-order with that title."""
    return forest.find_by_title(title.strip())


def find_broken_links(forest: Forest) -> list[tuple[KnowledgeNode, str]]:
    """(source node, title) pairs whose link resolves to no node."""
    titles = {node.title.casefold() for node in forest}
    broken = []
    for node in forest:
        for title in extract_links(node.content):
            if title.casefold() not in titles:
                broken.append((node, title))
    return broken


def attachment_token(attachment_id: str) -> str:
    return f"{ATTACHMENT_TOKEN_PREFIX}{attachment_id}"


def image_markdown(alt: str, attachment_id: str) -> str:
    """Markdown embedding an attachment, as inserted into node content."""
    return f"![{alt}]({attachment_token(attachment_id)})"


def extract_attachment_refs(content: str) -> list[AttachmentRef]:
    """Attachment references in order of appearance, one per id.

    Alt text comes from the surrounding ``![alt](...)`` when present.
    """
    alts: dict[str, str] = {}
    for m in IMAGE_PATTERN.finditer(content):
        alts.setdefault(m.group(2), m.group(1))
    seen = set()
    refs = []
    for attachment_id in ATTACHMENT_PATTERN.findall(content):
        if attachment_id not in seen:
            seen.add(attachment_id)
            refs.append(AttachmentRef(attachment_id=attachment_id, alt=alts.get(attachment_id, "")))
    return refs
