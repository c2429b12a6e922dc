"""
Workspace: the explicit application state container.

A Workspace owns the current AppState snapshot and is the single mutator.
Every transition builds a new snapshot through the pure tree functions,
swaps it in, and hands a save to a single-worker background executor so
saves land in order without blocking the caller. Structural changes are
also appended to the audit log on the same worker.

    with Workspace.open(load_config()) as ws:
        note = ws.create_node("note", None, {"title": "Ideas"})
        ws.move_node(note.id, inbox.id)
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Mapping

from . import todos as todo_views
from .audit_log import CreationSummary, ErasureCost, log_operation
from .config import CortexConfig
from .diagnostics import DiagnosticKind, DiagnosticLog
from .models import KnowledgeNode, Todo
from .state import AppState, SessionData, initial_state
from .storage.gateway import PersistenceGateway, ResolvedAttachment
from .tree import store
from .tree.forest import Forest
from .tree.links import backlinks_for, image_markdown
from .tree.search import SearchResult, search_nodes
from .util import new_id, now_ms

logger = logging.getLogger(__name__)

DAILY_TEMPLATE = "# Daily Log: {date}\n\n## 🎯 Focus for Today\n- \n\n## 📝 Notes\n"
SESSION_TEMPLATE = "### Summary\nFocused for {minutes} minutes.\n\n### Key Takeaways\n- "


class Workspace:
    """Current state plus the gateway it is saved through."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        state: AppState | None = None,
        *,
        config: CortexConfig | None = None,
        executor: Executor | None = None,
        persist: bool = True,
    ):
        self.gateway = gateway
        self.config = config or CortexConfig(data_dir=gateway.data_dir)
        self._state = state or initial_state(theme=self.config.theme, inbox_title=self.config.inbox_title)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="cortex-save")
        self._pending: list[Future] = []
        self._closed = False
        self._persist = persist

    @classmethod
    def open(cls, config: CortexConfig, *, executor: Executor | None = None) -> Workspace:
        """Load saved state (or seed a fresh one) from the configured data directory.

        A state file that exists but cannot be read is moved aside before the
        seed state is saved. If it cannot be moved, the workspace runs
        without saving so the file is left as it was.
        """
        diagnostics = DiagnosticLog(config.diagnostics_path)
        gateway = PersistenceGateway(
            config.data_dir,
            legacy_path=config.legacy_state_path,
            diagnostics=diagnostics,
        )
        state = gateway.load()
        persist = True
        if state is None and gateway.state_path.exists():
            persist = gateway.set_aside() is not None
            if not persist:
                logger.warning("Leaving %s untouched, changes will not be saved", gateway.state_path)
        workspace = cls(gateway, state, config=config, executor=executor, persist=persist)
        if state is None:
            logger.info("No saved state in %s, starting from seed state", config.data_dir)
            workspace._commit(workspace.state)
        return workspace

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def forest(self) -> Forest:
        return self._state.forest

    @property
    def diagnostics(self) -> DiagnosticLog:
        return self.gateway.diagnostics

    @property
    def active_node(self) -> KnowledgeNode | None:
        return self.forest.find(self._state.active_node_id)

    def find(self, node_id: str) -> KnowledgeNode | None:
        return self.forest.find(node_id)

    def search(self, query: str | None = None) -> list[SearchResult]:
        """Search with ``query``, or with the current search query."""
        return search_nodes(self.forest, self._state.search_query if query is None else query)

    def backlinks(self, node_id: str) -> list[KnowledgeNode]:
        return backlinks_for(self.forest, node_id)

    def todos(self, todo_filter: str = "all", sort_by: str = "priority", *, today: date | None = None) -> list[Todo]:
        selected = todo_views.filter_todos(todo_views.get_all_todos(self.forest), todo_filter, today=today)
        return todo_views.sort_todos(selected, sort_by)

    def resolve_attachments(self, node_id: str) -> list[ResolvedAttachment]:
        node = self.forest.find(node_id)
        if node is None:
            return []
        return self.gateway.resolve_attachments(node.content)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def _submit(self, fn: Callable[..., Any], *args: Any) -> None:
        if self._closed:
            raise RuntimeError("Workspace is closed")
        self._pending = [f for f in self._pending if not f.done()]
        future = self._executor.submit(fn, *args)
        future.add_done_callback(self._report)
        self._pending.append(future)

    def _report(self, future: Future) -> None:
        error = future.exception()
        if error is not None:
            self.diagnostics.record(DiagnosticKind.STORAGE_FAILURE, f"Background write failed: {error}")

    def _commit(
        self,
        state: AppState,
        operation: str | None = None,
        *,
        erased: int = 0,
        created: int = 0,
        attachments: int = 0,
        **metadata: Any,
    ) -> None:
        self._state = state
        if self._persist:
            self._submit(self.gateway.save, state)
        if operation is not None and self.config.audit_log:
            self._submit(
                log_operation,
                self.config.data_dir,
                operation,
                ErasureCost(nodes=erased),
                CreationSummary(nodes=created, attachments=attachments),
                {k: v for k, v in metadata.items() if v is not None},
            )

    def _missing(self, node_id: str | None) -> None:
        self.diagnostics.record(DiagnosticKind.NOT_FOUND, f"Node not found: {node_id}", node_id=node_id)

    def flush(self) -> None:
        """Block until every scheduled save has been written."""
        wait(self._pending)
        self._pending.clear()

    def close(self) -> None:
        """Write the final state and stop the background worker."""
        if self._closed:
            return
        if self._persist:
            self._submit(self.gateway.save, self._state)
        self.flush()
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Tree mutations
    # ------------------------------------------------------------------

    def create_node(
        self,
        node_type: str,
        parent_id: str | None = None,
        fields: Mapping[str, Any] | None = None,
    ) -> KnowledgeNode | None:
        """Create a node, make it active and expand its parent."""
        forest, node = store.create_node(self.forest, node_type, parent_id, fields)
        if node is None:
            self._missing(parent_id)
            return None

        expanded = self._state.expanded_node_ids
        if parent_id is not None:
            expanded = expanded | {parent_id}
        self._commit(
            self._state.evolve(forest=forest, active_node_id=node.id, expanded_node_ids=expanded),
            "node.create",
            created=1,
            node_id=node.id,
            type=node_type,
            parent_id=parent_id,
        )
        return node

    def update_node(self, node_id: str, patch: Mapping[str, Any]) -> KnowledgeNode | None:
        if node_id not in self.forest:
            self._missing(node_id)
            return None
        forest = store.update_node(self.forest, node_id, patch)
        self._commit(self._state.evolve(forest=forest))
        return forest.find(node_id)

    def rename_node(self, node_id: str, title: str) -> KnowledgeNode | None:
        return self.update_node(node_id, {"title": title})

    def set_completed(self, node_id: str, completed: bool = True) -> Todo | None:
        """Mark a todo done (or reopen it). Non-todo nodes are left alone."""
        node = self.forest.find(node_id)
        if node is None:
            self._missing(node_id)
            return None
        if not isinstance(node, Todo):
            logger.warning("Node %s is a %s, not a todo", node_id, node.type)
            return None
        updated = self.update_node(node_id, todo_views.completion_patch(completed, now_ms()))
        return updated if isinstance(updated, Todo) else None

    def delete_node(self, node_id: str) -> bool:
        """Remove a node and its subtree. Returns False when it was not found."""
        node = self.forest.find(node_id)
        if node is None:
            self._missing(node_id)
            return False

        removed = set(self.forest.subtree_ids(node_id))
        changes: dict[str, Any] = {
            "forest": store.delete_node(self.forest, node_id),
            "expanded_node_ids": self._state.expanded_node_ids - removed,
        }
        if self._state.active_node_id in removed:
            changes["active_node_id"] = None
            changes["current_view"] = "dashboard"
        self._commit(
            self._state.evolve(**changes),
            "node.delete",
            erased=len(removed),
            node_id=node_id,
            title=node.title,
        )
        return True

    def duplicate_node(self, node_id: str) -> KnowledgeNode | None:
        """Clone a subtree next to the original and return the clone root."""
        node = self.forest.find(node_id)
        if node is None:
            self._missing(node_id)
            return None

        forest = store.duplicate_node(self.forest, node_id)
        sequence = forest.sequence(node.parent_id)
        clone = forest.find(sequence[sequence.index(node_id) + 1])
        self._commit(
            self._state.evolve(forest=forest),
            "node.duplicate",
            created=len(self.forest.subtree_ids(node_id)),
            node_id=node_id,
            clone_id=clone.id if clone else None,
        )
        return clone

    def move_node(self, node_id: str, new_parent_id: str | None) -> bool:
        """Reparent a node. Refused moves are recorded and return False."""
        verdict = store.check_move(self.forest, node_id, new_parent_id)
        if verdict is DiagnosticKind.INVALID_MOVE:
            self.diagnostics.record(
                verdict,
                f"Cannot move {node_id} into itself or its descendant {new_parent_id}",
                node_id=node_id,
                new_parent_id=new_parent_id,
            )
            return False
        if verdict is not None:
            self._missing(node_id if node_id not in self.forest else new_parent_id)
            return False

        old_parent_id = self.forest.nodes[node_id].parent_id
        self._commit(
            self._state.evolve(forest=store.move_node(self.forest, node_id, new_parent_id)),
            "node.move",
            node_id=node_id,
            from_parent=old_parent_id,
            to_parent=new_parent_id,
        )
        return True

    def attach(
        self,
        node_id: str,
        data: bytes,
        alt: str = "",
        media_type: str = "application/octet-stream",
    ) -> str | None:
        """Store a payload and reference it from the end of the node's content.

        Returns the attachment id, or None when the node is missing or the
        payload could not be saved (the content is then left untouched).
        """
        node = self.forest.find(node_id)
        if node is None:
            self._missing(node_id)
            return None

        attachment_id = new_id()
        if not self.gateway.save_attachment(attachment_id, data, media_type):
            return None
        content = f"{node.content}\n{image_markdown(alt, attachment_id)}\n"
        forest = store.update_node(self.forest, node_id, {"content": content})
        self._commit(
            self._state.evolve(forest=forest),
            "attachment.add",
            attachments=1,
            node_id=node_id,
            attachment_id=attachment_id,
            media_type=media_type,
        )
        return attachment_id

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    def quick_add_todo(self, title: str, *, due_today: bool = False, today: date | None = None) -> Todo | None:
        """Capture a medium-priority todo into the inbox folder (or the root)."""
        title = title.strip()
        if not title:
            return None

        inbox = self.forest.find_child_by_title(None, self.config.inbox_title)
        parent_id = inbox.id if inbox is not None and inbox.type == "folder" else None
        fields: dict[str, Any] = {"title": title, "priority": "medium"}
        if due_today:
            fields["due_date"] = today or date.today()
        node = self.create_node("todo", parent_id, fields)
        return node if isinstance(node, Todo) else None

    def open_daily_journal(self, today: date | None = None) -> KnowledgeNode:
        """Find or create today's journal note and make it active."""
        title = (today or date.today()).isoformat()
        forest = self.forest
        created = 0

        journal = forest.find_child_by_title(None, self.config.journal_title)
        if journal is None:
            forest, journal = store.create_node(
                forest, "folder", None, {"title": self.config.journal_title, "tags": ["journal"]}
            )
            created += 1

        daily = forest.find_child_by_title(journal.id, title)
        if daily is None:
            forest, daily = store.create_node(
                forest,
                "note",
                journal.id,
                {"title": title, "content": DAILY_TEMPLATE.format(date=title), "tags": ["daily"]},
            )
            created += 1

        state = self._state.evolve(
            forest=forest,
            active_node_id=daily.id,
            current_view="browser",
            expanded_node_ids=self._state.expanded_node_ids | {journal.id},
        )
        if created:
            self._commit(state, "journal.open", created=created, node_id=daily.id)
        else:
            self._commit(state)
        return daily

    # ------------------------------------------------------------------
    # Navigation and preferences
    # ------------------------------------------------------------------

    def select(self, node_id: str) -> None:
        self._commit(self._state.evolve(active_node_id=node_id, current_view="browser", search_query=""))

    def toggle_expanded(self, node_id: str) -> bool:
        """Flip a node's expanded flag; returns the new value."""
        expanded = self._state.expanded_node_ids
        if node_id in expanded:
            self._commit(self._state.evolve(expanded_node_ids=expanded - {node_id}))
            return False
        self._commit(self._state.evolve(expanded_node_ids=expanded | {node_id}))
        return True

    def set_view(self, view: str) -> None:
        self._commit(self._state.evolve(current_view=view))

    def set_theme(self, theme: str) -> None:
        self._commit(self._state.evolve(theme=theme))

    def set_search_query(self, query: str) -> None:
        # not persisted
        self._state = self._state.evolve(search_query=query)

    # ------------------------------------------------------------------
    # Focus sessions
    # ------------------------------------------------------------------

    def start_session(self, linked_node_id: str | None = None, *, now: int | None = None) -> SessionData:
        """Start or resume the focus timer.

        A fresh session links to ``linked_node_id`` or, by default, the
        active node. Resuming keeps the elapsed seconds.
        """
        session = self._state.session
        if session.is_active:
            return session
        now = now_ms() if now is None else now
        link = linked_node_id or session.linked_node_id or self._state.active_node_id
        session = SessionData(
            is_active=True,
            start_time=now - session.elapsed * 1000,
            elapsed=session.elapsed,
            linked_node_id=link,
        )
        self._commit(self._state.evolve(session=session))
        return session

    def pause_session(self, *, now: int | None = None) -> SessionData:
        session = self._state.session
        if not session.is_active:
            return session
        self.tick(now=now)
        session = replace(self._state.session, is_active=False)
        self._commit(self._state.evolve(session=session))
        return session

    def tick(self, elapsed: int | None = None, *, now: int | None = None) -> int:
        """Update the elapsed seconds of a running session and return them."""
        session = self._state.session
        if elapsed is None:
            if not session.is_active or session.start_time is None:
                return session.elapsed
            now = now_ms() if now is None else now
            elapsed = max(0, (now - session.start_time) // 1000)
        self._commit(self._state.evolve(session=replace(session, elapsed=elapsed)))
        return elapsed

    def stop_session(self, *, now: int | None = None, today: date | None = None) -> KnowledgeNode | None:
        """Record the session as a node and reset the timer.

        Returns the session record, or None when no time was tracked.
        """
        session = self._state.session
        if session.is_active:
            self.tick(now=now)
            session = self._state.session
        if not session.is_active and session.elapsed == 0:
            return None

        duration = session.elapsed
        parent_id = session.linked_node_id
        if parent_id is not None and parent_id not in self.forest:
            logger.info("Linked node %s no longer exists, recording session at the root", parent_id)
            parent_id = None

        forest, record = store.create_node(
            self.forest,
            "session",
            parent_id,
            {
                "title": f"Session: {(today or date.today()).isoformat()}",
                "content": SESSION_TEMPLATE.format(minutes=duration // 60),
                "tags": ["session"],
                "session_duration": duration,
            },
            now=now,
        )
        self._commit(
            self._state.evolve(
                forest=forest,
                active_node_id=record.id,
                current_view="browser",
                session=SessionData(),
            ),
            "session.stop",
            created=1,
            node_id=record.id,
            seconds=duration,
        )
        return record
