"""Node forest, structural operations and derived views."""

from .forest import Forest
from .links import backlinks_for, extract_links, find_backlinks, resolve_link
from .search import SearchResult, search_nodes
from .store import (
    check_move,
    create_node,
    delete_node,
    duplicate_node,
    move_node,
    update_node,
)

__all__ = [
    "Forest",
    "create_node",
    "update_node",
    "delete_node",
    "duplicate_node",
    "move_node",
    "check_move",
    "search_nodes",
    "SearchResult",
    "find_backlinks",
    "backlinks_for",
    "extract_links",
    "resolve_link",
]
