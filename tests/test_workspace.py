"""Tests for the Workspace state container."""

import json
from datetime import date
from pathlib import Path

from cortex.audit_log import read_audit_log
from cortex.config import CortexConfig
from cortex.diagnostics import DiagnosticKind
from cortex.models import Session, Todo
from cortex.storage.gateway import PersistenceGateway
from cortex.workspace import Workspace


def _reload(config: CortexConfig):
    return PersistenceGateway(config.data_dir).load()


def test_open_seeds_and_saves(workspace: Workspace, config: CortexConfig) -> None:
    assert [r.title for r in workspace.forest.roots] == ["My Projects", "Inbox"]
    assert _reload(config) == workspace.state


def test_open_loads_saved_state(workspace: Workspace, config: CortexConfig) -> None:
    note = workspace.create_node("note", None, {"title": "Kept"})
    workspace.close()

    with Workspace.open(config) as reopened:
        assert reopened.find(note.id).title == "Kept"
        assert reopened.state.active_node_id == note.id


def test_background_executor_saves_in_order(config: CortexConfig) -> None:
    with Workspace.open(config) as ws:
        for i in range(20):
            ws.create_node("note", None, {"title": f"n{i}"})
        ws.flush()
        assert _reload(config) == ws.state


def test_create_activates_and_expands_parent(workspace: Workspace) -> None:
    inbox = workspace.forest.find_by_title("Inbox")
    todo = workspace.create_node("todo", inbox.id, {"title": "Buy milk"})
    assert workspace.state.active_node_id == todo.id
    assert inbox.id in workspace.state.expanded_node_ids


def test_create_under_missing_parent_records_not_found(workspace: Workspace) -> None:
    before = workspace.forest
    assert workspace.create_node("note", "missing", {"title": "x"}) is None
    assert workspace.forest is before
    assert workspace.diagnostics.entries(DiagnosticKind.NOT_FOUND)


def test_delete_active_subtree_returns_to_dashboard(workspace: Workspace) -> None:
    projects = workspace.forest.find_by_title("My Projects")
    child = workspace.forest.find_by_title("Learn React Native")
    workspace.select(child.id)
    assert workspace.state.current_view == "browser"

    assert workspace.delete_node(projects.id) is True
    assert workspace.state.active_node_id is None
    assert workspace.state.current_view == "dashboard"
    assert projects.id not in workspace.state.expanded_node_ids
    assert workspace.delete_node(projects.id) is False


def test_duplicate_returns_adjacent_clone(workspace: Workspace) -> None:
    projects = workspace.forest.find_by_title("My Projects")
    clone = workspace.duplicate_node(projects.id)
    assert clone.title == "My Projects (Copy)"
    assert workspace.forest.root_ids[1] == clone.id


def test_invalid_move_is_recorded(workspace: Workspace) -> None:
    projects = workspace.forest.find_by_title("My Projects")
    child = workspace.forest.find_by_title("Learn React Native")
    before = workspace.forest

    assert workspace.move_node(projects.id, child.id) is False
    assert workspace.forest is before
    (entry,) = workspace.diagnostics.entries(DiagnosticKind.INVALID_MOVE)
    assert entry.metadata["node_id"] == projects.id


def test_move(workspace: Workspace) -> None:
    inbox = workspace.forest.find_by_title("Inbox")
    child = workspace.forest.find_by_title("Learn React Native")
    assert workspace.move_node(child.id, inbox.id) is True
    assert workspace.forest.find(child.id).parent_id == inbox.id


def test_set_completed(workspace: Workspace) -> None:
    todo = workspace.create_node("todo", None, {"title": "t"})
    done = workspace.set_completed(todo.id)
    assert done.completed is True
    assert done.completed_at is not None
    reopened = workspace.set_completed(todo.id, False)
    assert reopened.completed is False
    assert reopened.completed_at is None

    inbox = workspace.forest.find_by_title("Inbox")
    assert workspace.set_completed(inbox.id) is None


def test_quick_add_goes_to_inbox(workspace: Workspace) -> None:
    inbox = workspace.forest.find_by_title("Inbox")
    todo = workspace.quick_add_todo("  Call bank ", due_today=True, today=date(2024, 5, 10))
    assert isinstance(todo, Todo)
    assert todo.title == "Call bank"
    assert todo.parent_id == inbox.id
    assert todo.priority == "medium"
    assert todo.due_date == date(2024, 5, 10)
    assert workspace.quick_add_todo("   ") is None


def test_quick_add_without_inbox_uses_root(workspace: Workspace) -> None:
    workspace.delete_node(workspace.forest.find_by_title("Inbox").id)
    todo = workspace.quick_add_todo("Loose end")
    assert todo.parent_id is None
    assert workspace.forest.root_ids[-1] == todo.id


def test_daily_journal_is_created_once(workspace: Workspace) -> None:
    today = date(2024, 5, 10)
    note = workspace.open_daily_journal(today)
    journal = workspace.forest.find_by_title("Journal")

    assert note.title == "2024-05-10"
    assert note.parent_id == journal.id
    assert note.content.startswith("# Daily Log: 2024-05-10")
    assert note.tags == ("daily",)
    assert journal.tags == ("journal",)
    assert journal.id in workspace.state.expanded_node_ids
    assert workspace.state.active_node_id == note.id

    again = workspace.open_daily_journal(today)
    assert again.id == note.id
    assert len(workspace.forest.children(journal.id)) == 1


def test_search_query_is_not_persisted(workspace: Workspace, config: CortexConfig) -> None:
    workspace.set_search_query("react")
    assert [r.node.title for r in workspace.search()] == ["Learn React Native"]
    workspace.flush()
    assert _reload(config).search_query == ""


def test_view_theme_and_expansion(workspace: Workspace, config: CortexConfig) -> None:
    inbox = workspace.forest.find_by_title("Inbox")
    workspace.set_view("todos")
    workspace.set_theme("dark")
    assert workspace.toggle_expanded(inbox.id) is True
    assert workspace.toggle_expanded(inbox.id) is False

    saved = _reload(config)
    assert saved.current_view == "todos"
    assert saved.theme == "dark"


def test_session_lifecycle(workspace: Workspace) -> None:
    inbox = workspace.forest.find_by_title("Inbox")
    start = 1_700_000_000_000

    session = workspace.start_session(inbox.id, now=start)
    assert session.is_active
    assert workspace.tick(now=start + 90_500) == 90

    paused = workspace.pause_session(now=start + 120_000)
    assert not paused.is_active
    assert paused.elapsed == 120

    resumed = workspace.start_session(now=start + 500_000)
    assert resumed.start_time == start + 500_000 - 120_000
    assert resumed.linked_node_id == inbox.id

    record = workspace.stop_session(now=start + 560_000, today=date(2024, 5, 10))
    assert isinstance(record, Session)
    assert record.parent_id == inbox.id
    assert record.session_duration == 180
    assert record.title == "Session: 2024-05-10"
    assert "Focused for 3 minutes." in record.content
    assert record.tags == ("session",)
    assert workspace.state.active_node_id == record.id
    assert workspace.state.session.elapsed == 0
    assert workspace.stop_session() is None


def test_session_with_dangling_link_records_at_root(workspace: Workspace) -> None:
    note = workspace.create_node("note", None, {"title": "Temp"})
    workspace.start_session(note.id, now=0)
    workspace.delete_node(note.id)
    record = workspace.stop_session(now=60_000)
    assert record.parent_id is None
    assert record.id in workspace.forest.root_ids


def test_attach_appends_image_reference(workspace: Workspace) -> None:
    note = workspace.create_node("note", None, {"title": "Pics", "content": "Intro"})
    attachment_id = workspace.attach(note.id, b"png-bytes", "diagram", "image/png")

    content = workspace.find(note.id).content
    assert content == f"Intro\n![diagram](image:{attachment_id})\n"
    (resolved,) = workspace.resolve_attachments(note.id)
    assert resolved.attachment.data == b"png-bytes"
    assert not resolved.missing


def test_attach_failure_leaves_content(tmp_path: Path, inline_executor) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    gateway = PersistenceGateway(blocker)
    ws = Workspace(gateway, executor=inline_executor)
    inbox = ws.forest.find_by_title("Inbox")

    assert ws.attach(inbox.id, b"data") is None
    assert ws.find(inbox.id).content == ""
    assert ws.diagnostics.entries(DiagnosticKind.STORAGE_FAILURE)


def test_audit_entries_for_structural_changes(workspace: Workspace, config: CortexConfig) -> None:
    projects = workspace.forest.find_by_title("My Projects")
    workspace.create_node("note", projects.id, {"title": "x"})
    workspace.delete_node(projects.id)

    entries = read_audit_log(config.data_dir)
    assert [e.operation for e in entries] == ["node.create", "node.delete"]
    assert entries[1].erased.nodes == 3


def test_audit_can_be_disabled(data_dir: Path, inline_executor) -> None:
    config = CortexConfig(data_dir=data_dir, audit_log=False)
    with Workspace.open(config, executor=inline_executor) as ws:
        ws.create_node("note", None, {"title": "x"})
    assert read_audit_log(data_dir) == []


def test_invalid_field_on_disk_keeps_the_rest(config: CortexConfig, inline_executor) -> None:
    with Workspace.open(config, executor=inline_executor) as ws:
        work = ws.create_node("folder", None, {"title": "Work"})
        for title in ("Plan", "Budget", "Notes"):
            ws.create_node("note", work.id, {"title": title})
        todo = ws.create_node("todo", work.id, {"title": "Call bank", "priority": "high"})

    state_path = config.data_dir / "cortex_state.json"
    record = json.loads(state_path.read_text(encoding="utf-8"))
    work_record = next(r for r in record["nodes"] if r["title"] == "Work")
    work_record["children"][-1]["priority"] = "critical"
    state_path.write_text(json.dumps(record), encoding="utf-8")

    with Workspace.open(config, executor=inline_executor) as ws:
        assert ws.find(todo.id).title == "Call bank"
        assert ws.find(todo.id).priority is None
        assert not ws.diagnostics.entries(DiagnosticKind.STORAGE_FAILURE)

    titles = [n.title for n in _reload(config).forest]
    assert titles[:5] == ["My Projects", "Learn React Native", "Inbox", "Work", "Plan"]
    assert "Call bank" in titles


def test_unreadable_state_is_moved_aside(config: CortexConfig, inline_executor) -> None:
    config.data_dir.mkdir(parents=True)
    state_path = config.data_dir / "cortex_state.json"
    state_path.write_text('{"nodes": [', encoding="utf-8")

    with Workspace.open(config, executor=inline_executor) as ws:
        assert ws.diagnostics.entries(DiagnosticKind.STORAGE_FAILURE)
        assert [r.title for r in ws.forest.roots] == ["My Projects", "Inbox"]

    (kept,) = config.data_dir.glob("cortex_state.json.corrupt-*")
    assert kept.read_text(encoding="utf-8") == '{"nodes": ['
    assert _reload(config) is not None


def test_state_that_cannot_be_moved_is_never_overwritten(
    config: CortexConfig, inline_executor, monkeypatch
) -> None:
    config.data_dir.mkdir(parents=True)
    state_path = config.data_dir / "cortex_state.json"
    state_path.write_text("[1, 2", encoding="utf-8")
    monkeypatch.setattr(PersistenceGateway, "set_aside", lambda self: None)

    with Workspace.open(config, executor=inline_executor) as ws:
        ws.create_node("note", None, {"title": "Scratch"})

    assert state_path.read_text(encoding="utf-8") == "[1, 2"


def test_attach_is_audited(workspace: Workspace, config: CortexConfig) -> None:
    note = workspace.create_node("note", None, {"title": "Pics"})
    attachment_id = workspace.attach(note.id, b"png-bytes", "diagram", "image/png")

    entry = read_audit_log(config.data_dir)[-1]
    assert entry.operation == "attachment.add"
    assert entry.created.attachments == 1
    assert entry.created.nodes == 0
    assert entry.metadata["attachment_id"] == attachment_id
