"""
Attachment storage for binary payloads referenced from node content.

Payloads live outside the state record, keyed by attachment id, so the
frequently saved tree stays small however large the attachments are.
Node content only carries ``image:<id>`` tokens.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Attachment:
    data: bytes
    media_type: str = DEFAULT_MEDIA_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


class AttachmentStore:
    """
    Id-keyed attachment storage.

    Payloads are stored in a two-level directory structure using the first
    2 characters of the id as the prefix:

        attachments/ab/ab12cd34-....json

    Each file is a JSON envelope holding the media type and the base64 data.
    """

    def __init__(self, root: Path):
        """
        Initialize attachment store.

        Args:
            root: Directory holding the attachment namespace
        """
        self.root = root

    def _path(self, attachment_id: str) -> Path:
        if not attachment_id or "/" in attachment_id or "\\" in attachment_id or attachment_id.startswith("."):
            raise ValueError(f"Invalid attachment id: {attachment_id!r}")
        prefix = attachment_id[:2]
        return self.root / prefix / f"{attachment_id}.json"

    def save(self, attachment_id: str, data: bytes, media_type: str = DEFAULT_MEDIA_TYPE) -> None:
        """
        Store a payload under ``attachment_id``, replacing any previous one.

        Raises:
            OSError: the payload could not be written
        """
        path = self._path(attachment_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        serialized = json.dumps({
            "_type": "binary",
            "_encoding": "base64",
            "media_type": media_type,
            "data": base64.b64encode(data).decode("ascii"),
        })

        # Write atomically (write to temp, then rename)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(serialized, encoding="utf-8")
        temp_path.replace(path)

    def load(self, attachment_id: str) -> Attachment | None:
        """
        Retrieve a payload.

        Returns:
            The attachment, or None when it is missing or unreadable
        """
        try:
            path = self._path(attachment_id)
        except ValueError:
            return None
        if not path.exists():
            return None

        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
            return Attachment(
                data=base64.b64decode(envelope["data"]),
                media_type=envelope.get("media_type", DEFAULT_MEDIA_TYPE),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Unreadable attachment %s: %s", attachment_id, e)
            return None

    def delete(self, attachment_id: str) -> bool:
        """Remove a payload. Returns False when it did not exist."""
        path = self._path(attachment_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def exists(self, attachment_id: str) -> bool:
        try:
            return self._path(attachment_id).exists()
        except ValueError:
            return False

    def list_ids(self) -> list[str]:
        """List all attachment ids in the store."""
        ids: list[str] = []
        if not self.root.exists():
            return ids

        for prefix_dir in self.root.iterdir():
            if prefix_dir.is_dir():
                for attachment_file in prefix_dir.glob("*.json"):
                    ids.append(attachment_file.stem)

        return sorted(ids)

    def size(self) -> int:
        """Get total size of stored envelopes in bytes."""
        total = 0
        if not self.root.exists():
            return total

        for prefix_dir in self.root.iterdir():
            if prefix_dir.is_dir():
                for attachment_file in prefix_dir.glob("*.json"):
                    total += attachment_file.stat().st_size

        return total

    def count(self) -> int:
        return len(self.list_ids())
