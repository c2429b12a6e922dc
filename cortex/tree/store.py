"""
Structural tree operations.

Every function takes a Forest snapshot and returns a new one; the input is
never modified. An operation naming an id that does not exist returns its
input unchanged rather than raising. A node's ``updated_at`` advances
whenever its own fields or its child sequence change.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from ..diagnostics import DiagnosticKind
from ..models import CREATION_DEFAULTS, NODE_CLASSES, KnowledgeNode
from ..util import new_id, now_ms
from .forest import Forest

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


def _touch(node: KnowledgeNode, now: int) -> KnowledgeNode:
    # strictly increasing even when two mutations land in the same millisecond
    return replace(node, updated_at=max(now, node.updated_at + 1))


def _insert_after(seq: tuple[str, ...], anchor: str, new: str) -> tuple[str, ...]:
    i = seq.index(anchor)
    return seq[: i + 1] + (new,) + seq[i + 1 :]


def _without(seq: tuple[str, ...], node_id: str) -> tuple[str, ...]:
    return tuple(nid for nid in seq if nid != node_id)


def create_node(
    forest: Forest,
    node_type: str,
    parent_id: str | None = None,
    fields: Mapping[str, Any] | None = None,
    *,
    node_id: str | None = None,
    now: int | None = None,
) -> tuple[Forest, KnowledgeNode | None]:
    """Append a new node to ``parent_id`` (or the roots).

    Returns the new forest and the created node. When ``parent_id`` does
    not resolve, the input forest is returned with None. Field values that
    do not validate are skipped with a warning, as in :func:`update_node`.

    Raises:
        ValueError: unknown node type, or ``node_id`` already in use
    """
    cls = NODE_CLASSES.get(node_type)
    if cls is None:
        raise ValueError(f"Unknown node type: {node_type!r}")
    if node_id is not None and node_id in forest:
        raise ValueError(f"Node id already in use: {node_id}")

    if parent_id is not None and parent_id not in forest:
        logger.debug("create_node: parent %s not found, forest unchanged", parent_id)
        return forest, None

    now = now_ms() if now is None else now
    node: KnowledgeNode = cls(id=node_id or new_id(), parent_id=parent_id, created_at=now, updated_at=now)
    values = {**CREATION_DEFAULTS.get(node_type, {}), **(fields or {})}
    if values:
        node, skipped = node.merged(values)
        if skipped:
            logger.warning("create_node: ignored fields %s for %s node", sorted(skipped), node_type)

    nodes = dict(forest.nodes)
    nodes[node.id] = node
    roots = forest.root_ids
    if parent_id is None:
        roots = roots + (node.id,)
    else:
        parent = nodes[parent_id]
        nodes[parent_id] = _touch(replace(parent, children=parent.children + (node.id,)), now)
    return Forest(nodes, roots), node


def update_node(
    forest: Forest,
    node_id: str,
    patch: Mapping[str, Any],
    *,
    now: int | None = None,
) -> Forest:
    """Merge ``patch`` into a node and refresh its ``updated_at``.

    Fields outside the node's variant, structural fields and values that do
    not validate (an unknown priority, a malformed date) are skipped with a
    warning, leaving the node's current value in place.
    """
    node = forest.find(node_id)
    if node is None:
        logger.debug("update_node: %s not found", node_id)
        return forest

    updated, skipped = node.merged(patch)
    if skipped:
        logger.warning("update_node: ignored fields %s on %s node %s", sorted(skipped), node.type, node_id)

    nodes = dict(forest.nodes)
    nodes[node_id] = _touch(updated, now_ms() if now is None else now)
    return Forest(nodes, forest.root_ids)


def delete_node(forest: Forest, node_id: str, *, now: int | None = None) -> Forest:
    """Remove a node together with its whole subtree."""
    node = forest.find(node_id)
    if node is None:
        logger.debug("delete_node: %s not found", node_id)
        return forest

    doomed = set(forest.subtree_ids(node_id))
    nodes = {nid: n for nid, n in forest.nodes.items() if nid not in doomed}
    roots = forest.root_ids
    if node.parent_id is None:
        roots = _without(roots, node_id)
    else:
        parent = nodes[node.parent_id]
        nodes[parent.id] = _touch(
            replace(parent, children=_without(parent.children, node_id)),
            now_ms() if now is None else now,
        )
    return Forest(nodes, roots)


def duplicate_node(forest: Forest, node_id: str, *, now: int | None = None) -> Forest:
    """Clone a subtree next to the original.

    Every cloned node gets a fresh id, fresh timestamps and COPY_SUFFIX on
    its title, descendants included. The clone root is inserted directly
    after the original in the same sequence.
    """
    node = forest.find(node_id)
    if node is None:
        logger.debug("duplicate_node: %s not found", node_id)
        return forest

    now = now_ms() if now is None else now
    subtree = forest.subtree_ids(node_id)
    id_map = {old: new_id() for old in subtree}

    nodes = dict(forest.nodes)
    for old in subtree:
        src = forest.nodes[old]
        nodes[id_map[old]] = replace(
            src,
            id=id_map[old],
            parent_id=node.parent_id if old == node_id else id_map[src.parent_id],
            title=src.title + COPY_SUFFIX,
            children=tuple(id_map[c] for c in src.children),
            created_at=now,
            updated_at=now,
        )

    clone_id = id_map[node_id]
    roots = forest.root_ids
    if node.parent_id is None:
        roots = _insert_after(roots, node_id, clone_id)
    else:
        parent = nodes[node.parent_id]
        nodes[parent.id] = _touch(replace(parent, children=_insert_after(parent.children, node_id, clone_id)), now)
    return Forest(nodes, roots)


def check_move(forest: Forest, node_id: str, new_parent_id: str | None) -> DiagnosticKind | None:
    """Why a move would be refused, or None when it is allowed.

    INVALID_MOVE when the destination is the node itself or lies inside its
    subtree; NOT_FOUND when either id is missing.
    """
    if node_id not in forest:
        return DiagnosticKind.NOT_FOUND
    if new_parent_id is None:
        return None
    if new_parent_id not in forest:
        return DiagnosticKind.NOT_FOUND
    if new_parent_id == node_id or forest.is_descendant(node_id, new_parent_id):
        return DiagnosticKind.INVALID_MOVE
    return None


def move_node(
    forest: Forest,
    node_id: str,
    new_parent_id: str | None,
    *,
    now: int | None = None,
) -> Forest:
    """Reparent a node as the last child of ``new_parent_id`` (or last root)."""
    verdict = check_move(forest, node_id, new_parent_id)
    if verdict is DiagnosticKind.INVALID_MOVE:
        logger.warning("Refusing to move %s into itself or its descendant %s", node_id, new_parent_id)
        return forest
    if verdict is not None:
        logger.debug("move_node: %s or %s not found", node_id, new_parent_id)
        return forest

    now = now_ms() if now is None else now
    node = forest.nodes[node_id]
    nodes = dict(forest.nodes)
    roots = forest.root_ids

    if node.parent_id is None:
        roots = _without(roots, node_id)
    else:
        old_parent = nodes[node.parent_id]
        nodes[old_parent.id] = _touch(replace(old_parent, children=_without(old_parent.children, node_id)), now)

    if new_parent_id is None:
        roots = roots + (node_id,)
    else:
        new_parent = nodes[new_parent_id]
        nodes[new_parent_id] = _touch(replace(new_parent, children=new_parent.children + (node_id,)), now)

    nodes[node_id] = _touch(replace(node, parent_id=new_parent_id), now)
    return Forest(nodes, roots)
