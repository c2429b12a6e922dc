"""Data models for knowledge tree nodes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields, replace
from datetime import date
from typing import Any, ClassVar, Literal, Mapping

logger = logging.getLogger(__name__)

# Valid node variants
NodeType = Literal["folder", "note", "todo", "session"]

Priority = Literal["low", "medium", "high", "urgent"]

Frequency = Literal["daily", "weekly", "monthly", "yearly"]

NODE_TYPES: tuple[str, ...] = ("folder", "note", "todo", "session")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")
FREQUENCIES: tuple[str, ...] = ("daily", "weekly", "monthly", "yearly")

# Owned by the tree operations; never taken from patches or initial fields.
STRUCTURAL_FIELDS = frozenset({"id", "parent_id", "children", "created_at", "updated_at"})


def to_camel(name: str) -> str:
    """parent_id -> parentId (persisted record keys)."""
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_snake(name: str) -> str:
    """parentId -> parent_id."""
    return re.sub(r"(?<!^)([A-Z])", r"_\1", name).lower()


def parse_date(value: Any) -> date | None:
    """Parse an ISO calendar date (YYYY-MM-DD); empty values mean no date."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class Subtask:
    """A checklist item inside a todo."""

    id: str
    title: str
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Subtask:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            completed=bool(data.get("completed", False)),
        )


@dataclass(frozen=True)
class RecurringConfig:
    """Repeat rule attached to a todo. Stored only; nothing expands it."""

    frequency: Frequency
    interval: int = 1
    end_date: date | None = None

    def __post_init__(self) -> None:
        if self.frequency not in FREQUENCIES:
            raise ValueError(f"Unsupported frequency: {self.frequency}")

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"frequency": self.frequency, "interval": self.interval}
        if self.end_date:
            d["endDate"] = self.end_date.isoformat()
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecurringConfig:
        return cls(
            frequency=str(data.get("frequency", "")),
            interval=int(data.get("interval", 1)),
            end_date=parse_date(data.get("endDate", data.get("end_date"))),
        )


@dataclass(frozen=True)
class KnowledgeNode:
    """Fields shared by every node variant.

    Nodes are immutable arena records: ``children`` holds the ordered ids of
    owned child nodes, and ``parent_id`` names the node whose child sequence
    contains this one (None for roots). Navigate through
    :class:`cortex.tree.forest.Forest`.
    """

    id: str
    parent_id: str | None = None
    title: str = ""
    content: str = ""
    children: tuple[str, ...] = ()
    created_at: int = 0  # epoch millis
    updated_at: int = 0  # epoch millis
    tags: tuple[str, ...] = ()

    type: ClassVar[str] = ""

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    def merged(self, values: Mapping[str, Any]) -> tuple[KnowledgeNode, list[str]]:
        """Copy with ``values`` merged in, plus the keys that were not applied.

        Structural fields, fields this variant does not carry and values
        that fail validation are skipped; the node keeps its old value.
        """
        known = self.field_names()
        applied: dict[str, Any] = {}
        skipped: list[str] = []
        for key, value in values.items():
            if key in STRUCTURAL_FIELDS or key not in known:
                skipped.append(key)
                continue
            try:
                applied[key] = coerce_field(key, value)
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.warning("Invalid value for %s on node %s: %s", key, self.id, e)
                skipped.append(key)
        return replace(self, **applied), skipped

    def to_dict(self) -> dict[str, Any]:
        """Persisted record for this node, without children."""
        d: dict[str, Any] = {"id": self.id, "type": self.type, "parentId": self.parent_id}
        for f in fields(self):
            if f.name in ("id", "parent_id", "children"):
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            d[to_camel(f.name)] = _dump_value(value)
        return d


@dataclass(frozen=True)
class Folder(KnowledgeNode):
    type = "folder"


@dataclass(frozen=True)
class Note(KnowledgeNode):
    type = "note"


@dataclass(frozen=True)
class Todo(KnowledgeNode):
    """An actionable item; only todos carry completion and scheduling."""

    completed: bool = False
    completed_at: int | None = None
    priority: Priority | None = None
    due_date: date | None = None
    due_time: str | None = None  # HH:MM
    estimated_minutes: int | None = None
    actual_minutes: int | None = None
    subtasks: tuple[Subtask, ...] = ()
    notes: str | None = None
    recurring: RecurringConfig | None = None

    type = "todo"


@dataclass(frozen=True)
class Session(KnowledgeNode):
    """Record of a finished focus session."""

    title: str = "Learning Session"
    session_duration: int = 0  # seconds

    type = "session"


NODE_CLASSES: dict[str, type[KnowledgeNode]] = {
    "folder": Folder,
    "note": Note,
    "todo": Todo,
    "session": Session,
}

# Field values a freshly created node starts from (not applied on load).
CREATION_DEFAULTS: dict[str, dict[str, Any]] = {
    "todo": {"priority": "medium"},
}


def coerce_field(name: str, value: Any) -> Any:
    """Normalize an incoming field value to the model's representation."""
    if name == "tags":
        if isinstance(value, str):
            value = [value]
        # de-duplicate, keep first-seen order
        return tuple(dict.fromkeys(str(t) for t in (value or ())))
    if name in ("title", "content"):
        return "" if value is None else str(value)
    if name == "due_date":
        return parse_date(value)
    if name == "priority":
        if value is not None and value not in PRIORITIES:
            raise ValueError(f"Unsupported priority: {value}")
        return value
    if name == "subtasks":
        return tuple(s if isinstance(s, Subtask) else Subtask.from_dict(s) for s in (value or ()))
    if name == "recurring":
        if value is None or isinstance(value, RecurringConfig):
            return value
        return RecurringConfig.from_dict(value)
    if name in ("created_at", "updated_at", "completed_at", "session_duration"):
        return None if value is None else int(value)
    return value


def _dump_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (Subtask, RecurringConfig)):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_dump_value(v) for v in value]
    return value


def node_from_dict(data: Mapping[str, Any]) -> KnowledgeNode:
    """Build a node record from its persisted form (children are ignored).

    A field value that does not parse is dropped with a warning and the
    field keeps its default. Only a record without a usable type or id
    raises ValueError.
    """
    node_type = data.get("type")
    cls = NODE_CLASSES.get(node_type)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown node type: {node_type!r}")
    if not data.get("id"):
        raise ValueError("Node record without id")

    known = cls.field_names()
    values: dict[str, Any] = {"id": str(data["id"])}
    for key, value in data.items():
        name = to_snake(key)
        if name in ("id", "children") or name not in known or value is None:
            continue
        try:
            values[name] = coerce_field(name, value)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            logger.warning("Dropping invalid %s on node %s: %s", key, values["id"], e)
    return cls(**values)
