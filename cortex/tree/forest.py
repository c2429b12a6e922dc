"""Immutable node forest with pre-order traversal and lookups."""

from __future__ import annotations

import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Sequence

from ..models import KnowledgeNode, node_from_dict

logger = logging.getLogger(__name__)


class Forest:
    """Snapshot of the node forest in arena form.

    Nodes are kept in a flat id -> record mapping; each record lists its
    child ids and the forest lists root ids. A Forest is never modified
    after construction: tree operations in :mod:`cortex.tree.store` build
    a new one, so older snapshots held elsewhere stay valid.
    """

    __slots__ = ("_nodes", "_roots")

    def __init__(
        self,
        nodes: Mapping[str, KnowledgeNode] | None = None,
        roots: Sequence[str] = (),
    ) -> None:
        self._nodes: dict[str, KnowledgeNode] = dict(nodes or {})
        self._roots: tuple[str, ...] = tuple(roots)

    # ------------------------------------------------------------------
    # Basic access
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Mapping[str, KnowledgeNode]:
        """Read-only id -> node mapping."""
        return MappingProxyType(self._nodes)

    @property
    def root_ids(self) -> tuple[str, ...]:
        return self._roots

    @property
    def roots(self) -> list[KnowledgeNode]:
        return [self._nodes[nid] for nid in self._roots]

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[KnowledgeNode]:
        return (node for node, _ in self.walk())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Forest):
            return NotImplemented
        return self._roots == other._roots and self._nodes == other._nodes

    def __repr__(self) -> str:
        return f"Forest(nodes={len(self._nodes)}, roots={len(self._roots)})"

    def find(self, node_id: str | None) -> KnowledgeNode | None:
        """Node with this id, or None.

        Ids are unique across the forest, so the index lookup returns the
        same node a pre-order search would.
        """
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def sequence(self, parent_id: str | None) -> tuple[str, ...]:
        """Ordered child ids of ``parent_id`` (the root ids for None)."""
        if parent_id is None:
            return self._roots
        parent = self._nodes.get(parent_id)
        return parent.children if parent else ()

    def children(self, parent_id: str | None) -> list[KnowledgeNode]:
        return [self._nodes[cid] for cid in self.sequence(parent_id)]

    def parent(self, node_id: str) -> KnowledgeNode | None:
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self._nodes.get(node.parent_id)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def walk(self, start: str | None = None) -> Iterator[tuple[KnowledgeNode, int]]:
        """Pre-order (node, depth) pairs for the whole forest or one subtree."""
        if start is None:
            stack = [(nid, 0) for nid in reversed(self._roots)]
        elif start in self._nodes:
            stack = [(start, 0)]
        else:
            return

        while stack:
            nid, depth = stack.pop()
            node = self._nodes[nid]
            yield node, depth
            stack.extend((cid, depth + 1) for cid in reversed(node.children))

    def flatten(self) -> list[KnowledgeNode]:
        """Every node exactly once, in pre-order."""
        return [node for node, _ in self.walk()]

    def subtree_ids(self, node_id: str) -> list[str]:
        """Ids of ``node_id`` and all its descendants, pre-order."""
        return [node.id for node, _ in self.walk(node_id)]

    def ancestors(self, node_id: str) -> list[KnowledgeNode]:
        """Strict ancestors, root first."""
        chain: list[KnowledgeNode] = []
        node = self._nodes.get(node_id)
        while node is not None and node.parent_id is not None:
            node = self._nodes.get(node.parent_id)
            if node is not None:
                chain.append(node)
        chain.reverse()
        return chain

    def is_descendant(self, ancestor_id: str, node_id: str) -> bool:
        """True when ``node_id`` lies strictly below ``ancestor_id``."""
        return any(a.id == ancestor_id for a in self.ancestors(node_id))

    # ------------------------------------------------------------------
    # Title lookups (case-insensitive, first pre-order match wins)
    # ------------------------------------------------------------------

    def find_by_title(self, title: str) -> KnowledgeNode | None:
        """First node in pre-order whose title equals ``title`` ignoring case.

        Titles are not unique; with duplicates the earliest node wins.
        """
        wanted = title.casefold()
        for node in self:
            if node.title.casefold() == wanted:
                return node
        return None

    def find_child_by_title(self, parent_id: str | None, title: str) -> KnowledgeNode | None:
        """First direct child of ``parent_id`` (roots for None) titled ``title``."""
        if parent_id is not None and parent_id not in self._nodes:
            return None
        wanted = title.casefold()
        for child in self.children(parent_id):
            if child.title.casefold() == wanted:
                return child
        return None

    # ------------------------------------------------------------------
    # Persisted form
    # ------------------------------------------------------------------

    def to_records(self) -> list[dict[str, Any]]:
        """Nested node records (children embedded), roots in order."""

        def build(nid: str) -> dict[str, Any]:
            node = self._nodes[nid]
            record = node.to_dict()
            record["children"] = [build(cid) for cid in node.children]
            return record

        return [build(nid) for nid in self._roots]

    @classmethod
    def from_records(cls, records: Sequence[Mapping[str, Any]]) -> Forest:
        """Build a forest from nested node records.

        ``parentId`` is taken from containment, not from the record. A record
        whose id was already seen is dropped along with its subtree. A record
        that cannot be read at all (unknown type, no id) is dropped and its
        children take its place in the parent's sequence.
        """
        nodes: dict[str, KnowledgeNode] = {}

        def build_all(children: Any, parent_id: str | None) -> list[str]:
            if not isinstance(children, (list, tuple)):
                return []
            return [nid for child in children for nid in build(child, parent_id)]

        def build(record: Any, parent_id: str | None) -> list[str]:
            if not isinstance(record, Mapping):
                logger.warning("Skipping node record that is not an object: %r", record)
                return []
            try:
                node = node_from_dict(record)
            except ValueError as e:
                logger.warning("Skipping unreadable node record: %s", e)
                return build_all(record.get("children"), parent_id)
            if node.id in nodes:
                logger.warning("Dropping duplicate node id %s (%r)", node.id, node.title)
                return []
            nodes[node.id] = node  # reserve the id before descending
            child_ids = build_all(record.get("children"), node.id)
            nodes[node.id] = replace(node, parent_id=parent_id, children=tuple(child_ids))
            return [node.id]

        return cls(nodes, build_all(list(records), None))
