"""Lightweight structured logging for deployment events."""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, TextIO


def events_enabled() -> bool:
    """Return True when structured event lines are switched on via ``SUPADEPLOY_LOG_EVENTS``."""
    text = str(os.environ.get("SUPADEPLOY_LOG_EVENTS") or "").strip().lower()
    return text in {"1", "true", "yes", "y", "on"}


def log_event(event: str, payload: Dict[str, Any] | None = None, *, stream: TextIO | None = None) -> None:
    """Emit a structured JSON log line.

    Args:
        event (str): Event name, e.g. ``statement_applied``.
        payload (Dict[str, Any] | None): Extra fields merged into the line.
        stream (TextIO | None): Output stream; defaults to stderr so console output stays clean.
    """
    if not events_enabled():
        return
    data = {
        "event": event,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
    if payload:
        data.update(payload)
    print(json.dumps(data, ensure_ascii=False, default=str), file=stream or sys.stderr)
