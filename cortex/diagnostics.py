"""
Diagnostics for tolerated failures.

None of these conditions interrupt the caller. Missing ids turn into no-ops,
rejected moves leave the forest as it was, storage errors leave the
in-memory state authoritative and missing attachments render as
placeholders. This module keeps a record of them:

- DiagnosticKind classifies the condition
- DiagnosticLog keeps recent entries in memory and optionally appends
  them as JSON lines to ``diagnostics.log``
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    """Tolerated failure classes."""

    NOT_FOUND = "not_found"
    INVALID_MOVE = "invalid_move"
    STORAGE_FAILURE = "storage_failure"
    ATTACHMENT_MISSING = "attachment_missing"


_LEVELS = {
    DiagnosticKind.NOT_FOUND: logging.DEBUG,
    DiagnosticKind.INVALID_MOVE: logging.WARNING,
    DiagnosticKind.STORAGE_FAILURE: logging.ERROR,
    DiagnosticKind.ATTACHMENT_MISSING: logging.WARNING,
}


@dataclass
class Diagnostic:
    """A single recorded condition."""

    timestamp: str
    kind: DiagnosticKind
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "timestamp": self.timestamp,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.metadata:
            d["metadata"] = self.metadata
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Diagnostic":
        return cls(
            timestamp=data["timestamp"],
            kind=DiagnosticKind(data["kind"]),
            message=data.get("message", ""),
            metadata=data.get("metadata", {}),
        )


class DiagnosticLog:
    """Bounded in-memory record, mirrored to a JSONL file when a path is set."""

    def __init__(self, path: Path | None = None, *, max_entries: int = 200):
        self.path = path
        self._entries: deque[Diagnostic] = deque(maxlen=max_entries)

    def record(self, kind: DiagnosticKind, message: str, **metadata: Any) -> Diagnostic:
        entry = Diagnostic(
            timestamp=datetime.now(timezone.utc).isoformat(),
            kind=kind,
            message=message,
            metadata={k: v for k, v in metadata.items() if v is not None},
        )
        self._entries.append(entry)
        logger.log(_LEVELS[kind], "%s: %s", kind.value, message)

        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(entry.to_dict(), default=str) + "\n")
            except OSError as e:
                # the in-memory entry is still kept
                logger.error("Failed to write diagnostics log %s: %s", self.path, e)
        return entry

    def entries(self, kind: DiagnosticKind | None = None) -> list[Diagnostic]:
        if kind is None:
            return list(self._entries)
        return [e for e in self._entries if e.kind == kind]

    def __len__(self) -> int:
        return len(self._entries)


def read_diagnostics(path: Path, last_n: int | None = None) -> list[Diagnostic]:
    """Read diagnostics written by DiagnosticLog, skipping malformed lines."""
    if not path.exists():
        return []

    entries = []
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    entries.append(Diagnostic.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError):
                    continue

    if last_n is not None:
        return entries[-last_n:]
    return entries
