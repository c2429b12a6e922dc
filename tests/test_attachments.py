"""Tests for attachment storage and resolution."""

from pathlib import Path

import pytest

from cortex.diagnostics import DiagnosticKind
from cortex.storage.attachments import AttachmentStore
from cortex.storage.gateway import PersistenceGateway
from cortex.tree.links import image_markdown


def test_store_round_trip(tmp_path: Path) -> None:
    store = AttachmentStore(tmp_path / "attachments")
    store.save("ab12", b"\x89PNG\r\n", "image/png")

    assert (tmp_path / "attachments" / "ab" / "ab12.json").exists()
    attachment = store.load("ab12")
    assert attachment.data == b"\x89PNG\r\n"
    assert attachment.media_type == "image/png"
    assert attachment.size == 6
    assert store.exists("ab12")
    assert store.list_ids() == ["ab12"]
    assert store.count() == 1
    assert store.size() > 0


def test_missing_and_invalid_ids(tmp_path: Path) -> None:
    store = AttachmentStore(tmp_path / "attachments")
    assert store.load("nothing") is None
    assert store.load("../etc") is None
    assert not store.exists("")
    assert store.list_ids() == []
    with pytest.raises(ValueError):
        store.save("a/b", b"x")


def test_delete(tmp_path: Path) -> None:
    store = AttachmentStore(tmp_path)
    store.save("cd34", b"x")
    assert store.delete("cd34") is True
    assert store.delete("cd34") is False
    assert store.load("cd34") is None


def test_unreadable_envelope_loads_as_missing(tmp_path: Path) -> None:
    store = AttachmentStore(tmp_path)
    store.save("ef56", b"x")
    (tmp_path / "ef" / "ef56.json").write_text("garbage", encoding="utf-8")
    assert store.load("ef56") is None


def test_resolve_marks_missing_payloads(gateway: PersistenceGateway) -> None:
    assert gateway.save_attachment("good1", b"data", "image/png")
    content = f"{image_markdown('ok', 'good1')}\n{image_markdown('gone', 'lost1')}"

    resolved = gateway.resolve_attachments(content)
    assert [r.ref.attachment_id for r in resolved] == ["good1", "lost1"]
    assert not resolved[0].missing
    assert resolved[0].attachment.data == b"data"
    assert resolved[1].missing
    assert resolved[1].ref.alt == "gone"

    (entry,) = gateway.diagnostics.entries(DiagnosticKind.ATTACHMENT_MISSING)
    assert entry.metadata == {"attachment_id": "lost1"}


def test_failed_attachment_save_is_reported(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    gateway = PersistenceGateway(blocker)

    assert gateway.save_attachment("abcd", b"x") is False
    assert gateway.diagnostics.entries(DiagnosticKind.STORAGE_FAILURE)
