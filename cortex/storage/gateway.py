"""
Durable save/load of application state, plus attachment access.

Layout under the data directory:

    cortex_state.json     # the AppState record, stored under the well-known key
    attachments/          # AttachmentStore namespace, keyed by attachment id
    cortex_state.json.corrupt-<ms>  # an unreadable state file, moved aside
    localstorage.json     # legacy key -> JSON string file, read once when
                          # the primary store is empty

Failures never propagate: they are recorded as STORAGE_FAILURE diagnostics
and the caller keeps working from its in-memory state.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..diagnostics import DiagnosticKind, DiagnosticLog
from ..state import AppState
from ..tree.links import AttachmentRef, extract_attachment_refs
from ..util import now_ms
from .attachments import DEFAULT_MEDIA_TYPE, Attachment, AttachmentStore

logger = logging.getLogger(__name__)

STATE_KEY = "cortex_state"
LEGACY_FILENAME = "localstorage.json"
ATTACHMENTS_DIRNAME = "attachments"


@dataclass(frozen=True)
class ResolvedAttachment:
    """An attachment reference and its payload; payload None renders as a placeholder."""

    ref: AttachmentRef
    attachment: Attachment | None

    @property
    def missing(self) -> bool:
        return self.attachment is None


class PersistenceGateway:
    """State store and attachment store rooted at one data directory."""

    def __init__(
        self,
        data_dir: Path,
        *,
        legacy_path: Path | None = None,
        diagnostics: DiagnosticLog | None = None,
    ):
        self.data_dir = data_dir
        self.state_path = data_dir / f"{STATE_KEY}.json"
        self.legacy_path = legacy_path or data_dir / LEGACY_FILENAME
        self.attachments = AttachmentStore(data_dir / ATTACHMENTS_DIRNAME)
        self.diagnostics = diagnostics or DiagnosticLog()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def save(self, state: AppState) -> bool:
        """Persist ``state`` (without its search query). Returns success."""
        try:
            self._write_record(state.to_dict())
        except (OSError, TypeError, ValueError) as e:
            self.diagnostics.record(
                DiagnosticKind.STORAGE_FAILURE,
                f"Failed to save state: {e}",
                path=str(self.state_path),
            )
            return False
        return True

    def load(self) -> AppState | None:
        """Previously saved state, or None when nothing usable is stored.

        The legacy file is copied into the primary store only once its
        record has been read successfully.
        """
        migrated = False
        try:
            record = self._read_record()
            if record is None:
                record = self._read_legacy()
                migrated = record is not None
            if record is None:
                return None
            state = AppState.from_dict(record)
        except (OSError, TypeError, ValueError, KeyError, AttributeError) as e:
            self.diagnostics.record(
                DiagnosticKind.STORAGE_FAILURE,
                f"Failed to load state: {e}",
                path=str(self.legacy_path if migrated else self.state_path),
            )
            return None

        if migrated:
            logger.info("Migrating state from %s to %s", self.legacy_path, self.state_path)
            self.save(state)
        return state

    def set_aside(self) -> Path | None:
        """Rename an unreadable state file so a later save cannot replace it.

        Returns the new path, or None when there was nothing to move or the
        rename failed (recorded as a STORAGE_FAILURE).
        """
        if not self.state_path.exists():
            return None
        target = self.state_path.with_name(f"{self.state_path.name}.corrupt-{now_ms()}")
        try:
            self.state_path.replace(target)
        except OSError as e:
            self.diagnostics.record(
                DiagnosticKind.STORAGE_FAILURE,
                f"Failed to move unreadable state aside: {e}",
                path=str(self.state_path),
            )
            return None
        logger.warning("Moved unreadable state %s to %s", self.state_path, target)
        return target

    def _write_record(self, record: dict[str, Any]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        serialized = json.dumps(record, indent=2, ensure_ascii=False)

        # Write atomically (write to temp, then rename)
        temp_path = self.state_path.with_suffix(".tmp")
        temp_path.write_text(serialized, encoding="utf-8")
        temp_path.replace(self.state_path)

    def _read_record(self) -> dict[str, Any] | None:
        if not self.state_path.exists():
            return None
        record = json.loads(self.state_path.read_text(encoding="utf-8"))
        if not isinstance(record, dict):
            raise ValueError("state record is not an object")
        return record

    def _read_legacy(self) -> dict[str, Any] | None:
        """State record stored under the well-known key in the legacy file."""
        if not self.legacy_path.exists():
            return None

        entries = json.loads(self.legacy_path.read_text(encoding="utf-8"))
        value = entries.get(STATE_KEY) if isinstance(entries, dict) else None
        if not value:
            return None

        record = json.loads(value) if isinstance(value, str) else value
        if not isinstance(record, dict):
            raise ValueError("legacy state record is not an object")
        return record

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def save_attachment(self, attachment_id: str, data: bytes, media_type: str = DEFAULT_MEDIA_TYPE) -> bool:
        try:
            self.attachments.save(attachment_id, data, media_type)
        except (OSError, ValueError) as e:
            self.diagnostics.record(
                DiagnosticKind.STORAGE_FAILURE,
                f"Failed to save attachment {attachment_id}: {e}",
                attachment_id=attachment_id,
            )
            return False
        return True

    def load_attachment(self, attachment_id: str) -> Attachment | None:
        attachment = self.attachments.load(attachment_id)
        if attachment is None:
            self.diagnostics.record(
                DiagnosticKind.ATTACHMENT_MISSING,
                f"Attachment not found: {attachment_id}",
                attachment_id=attachment_id,
            )
        return attachment

    def resolve_attachments(self, content: str) -> list[ResolvedAttachment]:
        """Every attachment referenced by ``content`` with its payload, if any."""
        return [
            ResolvedAttachment(ref=ref, attachment=self.load_attachment(ref.attachment_id))
            for ref in extract_attachment_refs(content)
        ]
