"""Migration file discovery and the local deployment history file."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from supadeploy.core.logging_utils import log_event


def list_migrations(migrations_dir: Path) -> List[str]:
    """Return sorted ``.sql`` file names in ``migrations_dir``, skipping dotfiles."""
    directory = Path(migrations_dir)
    if not directory.is_dir():
        return []
    return sorted(
        entry.name
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.endswith(".sql") and not entry.name.startswith(".")
    )


def resolve_migration_path(
    choice: str,
    *,
    project_root: Path,
    migrations_dir: Path,
    available: Optional[List[str]] = None,
) -> Path:
    """Resolve an operator's choice to a SQL file path.

    A number picks from ``available`` (1-based). Absolute paths are kept, paths with a
    separator are relative to ``project_root``, bare names are relative to
    ``migrations_dir``. ``.sql`` is appended when missing.
    """
    text = str(choice or "").strip()
    if available and text.isdigit():
        index = int(text) - 1
        if 0 <= index < len(available):
            text = available[index]
    path = Path(text)
    if path.is_absolute():
        resolved = path
    elif "/" in text or os.sep in text:
        resolved = Path(project_root) / path
    else:
        resolved = Path(migrations_dir) / path
    if resolved.suffix != ".sql":
        resolved = resolved.with_name(resolved.name + ".sql")
    return resolved


def load_history(path: Path) -> List[Dict[str, Any]]:
    """Load the deployment history list; a missing file is an empty history."""
    target = Path(path)
    if not target.exists():
        return []
    data = json.loads(target.read_text(encoding="utf-8") or "[]")
    return data if isinstance(data, list) else []


def append_history(
    path: Path,
    file_name: str,
    *,
    deployed_at: Optional[datetime] = None,
    deployed_by: Optional[str] = None,
) -> Dict[str, Any]:
    """Append one successful deployment to the history file and return the entry."""
    entry = {
        "file": file_name,
        "deployed_at": (deployed_at or datetime.now(timezone.utc)).isoformat(),
        "deployed_by": deployed_by or os.environ.get("USER") or "unknown",
    }
    history = load_history(path)
    history.append(entry)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(history, indent=2, ensure_ascii=False), encoding="utf-8")
    log_event("history_appended", entry)
    return entry
