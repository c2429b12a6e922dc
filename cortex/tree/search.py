"""Full-tree substring search with breadcrumb paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ..models import KnowledgeNode
from .forest import Forest

BREADCRUMB_SEPARATOR = " / "
UNTITLED = "Untitled"


@dataclass(frozen=True)
class SearchResult:
    node: KnowledgeNode
    path: str  # titles of strict ancestors; "" for roots


def iter_breadcrumbs(forest: Forest) -> Iterator[SearchResult]:
    """Every node in pre-order paired with its ancestors' titles."""
    stack = [(nid, "") for nid in reversed(forest.root_ids)]
    while stack:
        nid, path = stack.pop()
        node = forest.nodes[nid]
        yield SearchResult(node=node, path=path)

        label = node.title or UNTITLED
        child_path = f"{path}{BREADCRUMB_SEPARATOR}{label}" if path else label
        stack.extend((cid, child_path) for cid in reversed(node.children))


def search_nodes(forest: Forest, query: str) -> list[SearchResult]:
    """Nodes whose title or content contains ``query``, ignoring case.

    An empty query yields no results. Order is pre-order; nothing is ranked.
    """
    if not query:
        return []
    needle = query.casefold()
    return [
        result
        for result in iter_breadcrumbs(forest)
        if needle in result.node.title.casefold() or needle in result.node.content.casefold()
    ]
