"""Application state snapshot and its persisted record."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping

from .tree.forest import Forest
from .tree.store import create_node

View = Literal["dashboard", "browser", "search", "todos"]
Theme = Literal["light", "dark"]

VIEWS: tuple[str, ...] = ("dashboard", "browser", "search", "todos")
THEMES: tuple[str, ...] = ("light", "dark")

STATE_VERSION = 1


@dataclass(frozen=True)
class SessionData:
    """Focus timer state. ``linked_node_id`` may point at a deleted node."""

    is_active: bool = False
    start_time: int | None = None  # epoch millis
    elapsed: int = 0  # seconds
    linked_node_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isActive": self.is_active,
            "startTime": self.start_time,
            "elapsed": self.elapsed,
            "linkedNodeId": self.linked_node_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> SessionData:
        data = data or {}
        start = data.get("startTime")
        return cls(
            is_active=bool(data.get("isActive", False)),
            start_time=int(start) if start is not None else None,
            elapsed=int(data.get("elapsed", 0)),
            linked_node_id=data.get("linkedNodeId"),
        )


@dataclass(frozen=True)
class AppState:
    """Everything the application keeps between runs, plus the search query.

    ``search_query`` is ephemeral: it is never written and always empty
    after a load.
    """

    forest: Forest = field(default_factory=Forest)
    active_node_id: str | None = None
    expanded_node_ids: frozenset[str] = frozenset()
    current_view: str = "dashboard"
    session: SessionData = field(default_factory=SessionData)
    theme: str = "light"
    search_query: str = ""

    def __post_init__(self) -> None:
        if self.current_view not in VIEWS:
            raise ValueError(f"Unsupported view: {self.current_view}")
        if self.theme not in THEMES:
            raise ValueError(f"Unsupported theme: {self.theme}")

    def evolve(self, **changes: Any) -> AppState:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Persisted record (search_query omitted)."""
        return {
            "version": STATE_VERSION,
            "nodes": self.forest.to_records(),
            "activeNodeId": self.active_node_id,
            "expandedNodeIds": sorted(self.expanded_node_ids),
            "currentView": self.current_view,
            "session": self.session.to_dict(),
            "theme": self.theme,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppState:
        view = data.get("currentView") or "dashboard"
        return cls(
            forest=Forest.from_records(data.get("nodes") or []),
            active_node_id=data.get("activeNodeId"),
            expanded_node_ids=frozenset(data.get("expandedNodeIds") or ()),
            current_view=view if view in VIEWS else "dashboard",
            session=SessionData.from_dict(data.get("session")),
            theme=data.get("theme") if data.get("theme") in THEMES else "light",
        )


def initial_state(*, theme: str = "light", inbox_title: str = "Inbox") -> AppState:
    """First-run state: a projects folder with one example and an inbox."""
    forest, projects = create_node(Forest(), "folder", None, {"title": "My Projects"})
    forest, _ = create_node(
        forest,
        "folder",
        projects.id,
        {
            "title": "Learn React Native",
            "content": "# Learning Plan\nGoal is to build a mobile app.",
            "tags": ["coding", "mobile"],
        },
    )
    forest, _ = create_node(forest, "folder", None, {"title": inbox_title})
    return AppState(forest=forest, expanded_node_ids=frozenset({projects.id}), theme=theme)
