"""
Audit log of structural mutations.

Each mutation of the tree appends one JSON line to ``audit.log`` in the
data directory, with a count of the nodes it created and erased. Deleting
a folder erases its whole subtree, so the erasure side is what makes the
log worth reading. Attaching a file records the stored payload on the
creation side.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOG_FILENAME = "audit.log"


@dataclass
class ErasureCost:
    """Nodes erased by an operation, descendants included."""
    nodes: int = 0


@dataclass
class CreationSummary:
    """Nodes and attachment payloads created by an operation."""
    nodes: int = 0
    attachments: int = 0


@dataclass
class AuditEntry:
    """A single audit log entry."""
    timestamp: str
    operation: str
    erased: ErasureCost
    created: CreationSummary
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp,
            "operation": self.operation,
            "erased": asdict(self.erased),
            "created": asdict(self.created),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        """Create from dictionary."""
        return cls(
            timestamp=data["timestamp"],
            operation=data["operation"],
            erased=ErasureCost(**data.get("erased", {})),
            created=CreationSummary(**data.get("created", {})),
            metadata=data.get("metadata", {}),
        )


def get_audit_log_path(data_dir: Path) -> Path:
    """Get the path to the audit log file."""
    return data_dir / AUDIT_LOG_FILENAME


def log_operation(
    data_dir: Path,
    operation: str,
    erased: ErasureCost | None = None,
    created: CreationSummary | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEntry:
    """
    Append an operation to the audit log.

    Args:
        data_dir: Data directory holding the log
        operation: Name of the operation (e.g., "node.delete", "attachment.add")
        erased: Summary of what was erased
        created: Summary of what was created
        metadata: Additional context (node ids, titles)

    Returns:
        The created audit entry
    """
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=operation,
        erased=erased or ErasureCost(),
        created=created or CreationSummary(),
        metadata=metadata or {},
    )

    log_path = get_audit_log_path(data_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Append as JSON Lines format (one JSON object per line)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    return entry


def read_audit_log(data_dir: Path, last_n: int | None = None) -> list[AuditEntry]:
    """
    Read entries from the audit log.

    Args:
        data_dir: Data directory holding the log
        last_n: If specified, return only the last N entries

    Returns:
        List of audit entries, oldest first
    """
    log_path = get_audit_log_path(data_dir)
    if not log_path.exists():
        return []

    entries = []
    with log_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    data = json.loads(line)
                    entries.append(AuditEntry.from_dict(data))
                except (json.JSONDecodeError, KeyError, TypeError):
                    continue  # Skip malformed lines

    if last_n is not None:
        return entries[-last_n:]
    return entries
