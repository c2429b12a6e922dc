"""CortexConfig: per-data-directory settings.

Default layout (the data directory is ``$CORTEX_HOME`` or ``~/.cortex``):

    cortex.toml           # settings (optional)
    cortex_state.json     # saved application state
    attachments/          # binary payloads referenced from notes
    audit.log             # JSONL record of structural changes
    diagnostics.log       # JSONL record of tolerated failures

cortex.toml example:

    [cortex]
    theme = "dark"
    inbox_title = "Inbox"
    journal_title = "Journal"
    audit_log = true
    log_level = "WARNING"
    # legacy_state_path = "/path/to/localstorage.json"
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "cortex.toml"
ENV_HOME = "CORTEX_HOME"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_DEFAULT_TOML = """\
[cortex]
theme = "light"
inbox_title = "Inbox"
journal_title = "Journal"
audit_log = true
log_level = "WARNING"
# legacy_state_path = "localstorage.json"
"""


@dataclass
class CortexConfig:
    data_dir: Path
    theme: str = "light"
    inbox_title: str = "Inbox"
    journal_title: str = "Journal"
    audit_log: bool = True
    log_level: str = "WARNING"
    legacy_state_path: Path | None = None

    @property
    def diagnostics_path(self) -> Path:
        return self.data_dir / "diagnostics.log"

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level)


def default_data_dir() -> Path:
    env = os.environ.get(ENV_HOME)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".cortex"


def _coerce_str(data: dict[str, Any], key: str, default: str) -> str:
    value = str(data.get(key, default)).strip()
    if not value:
        raise ValueError(f"{key} must not be empty")
    return value


def load_config(data_dir: Path | None = None) -> CortexConfig:
    """Read ``cortex.toml`` from the data directory; defaults when absent.

    Raises:
        ValueError: malformed TOML or invalid setting values
    """
    data_dir = (data_dir or default_data_dir()).expanduser()
    path = data_dir / CONFIG_FILENAME
    if not path.exists():
        return CortexConfig(data_dir=data_dir)

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"{path}: {e}") from e
    section = raw.get("cortex", {})
    if not isinstance(section, dict):
        raise ValueError("[cortex] must be a table")

    theme = _coerce_str(section, "theme", "light")
    if theme not in ("light", "dark"):
        raise ValueError(f"theme must be 'light' or 'dark', got {theme!r}")

    log_level = _coerce_str(section, "log_level", "WARNING").upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

    audit = section.get("audit_log", True)
    if not isinstance(audit, bool):
        raise ValueError("audit_log must be true or false")

    legacy = section.get("legacy_state_path")
    legacy_path = None
    if legacy:
        legacy_path = Path(str(legacy)).expanduser()
        if not legacy_path.is_absolute():
            legacy_path = data_dir / legacy_path

    return CortexConfig(
        data_dir=data_dir,
        theme=theme,
        inbox_title=_coerce_str(section, "inbox_title", "Inbox"),
        journal_title=_coerce_str(section, "journal_title", "Journal"),
        audit_log=audit,
        log_level=log_level,
        legacy_state_path=legacy_path,
    )


def init_config(data_dir: Path) -> Path:
    """Write a default cortex.toml unless one exists. Returns its path."""
    data_dir.mkdir(parents=True, exist_ok=True)
    path = data_dir / CONFIG_FILENAME
    if not path.exists():
        path.write_text(_DEFAULT_TOML, encoding="utf-8")
    return path
