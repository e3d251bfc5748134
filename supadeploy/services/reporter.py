"""Console output for operators: progress, status lines, and manual-deploy instructions."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, TextIO

MANUAL_STEPS = (
    "Open the project dashboard > SQL Editor",
    "Paste the SQL below (or open the saved file) and run it",
    "Re-run this command to verify",
)


def preview(statement: str, width: int = 60) -> str:
    """Return a one-line preview of a statement."""
    text = " ".join(str(statement or "").split())
    return text if len(text) <= width else text[:width] + "..."


def save_manual_sql(path: Path, sql: str) -> Path:
    """Write ``sql`` to ``path`` for manual deployment and return the path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(sql, encoding="utf-8")
    return target


class Reporter:
    """Prints progress to ``out`` and errors to ``err``."""

    def __init__(self, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> None:
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def line(self, message: str = "") -> None:
        print(message, file=self.out)

    def step(self, message: str) -> None:
        print(f"[step] {message}", file=self.out)

    def ok(self, message: str) -> None:
        print(f"[ok] {message}", file=self.out)

    def warn(self, message: str) -> None:
        print(f"[warn] {message}", file=self.out)

    def error(self, message: str) -> None:
        print(f"[error] {message}", file=self.err)

    def manual_deploy(self, sql: str, *, source: str = "", saved_to: Optional[Path] = None) -> None:
        """Print the steps and the raw SQL for pasting into the dashboard SQL editor."""
        self.line()
        self.line("Manual deployment required:")
        for number, text in enumerate(MANUAL_STEPS, start=1):
            self.line(f"  {number}. {text}")
        if source:
            self.line(f"  Source: {source}")
        if saved_to is not None:
            self.line(f"  Saved to: {saved_to}")
        self.line()
        self.line("-" * 60)
        self.line(sql.rstrip())
        self.line("-" * 60)
