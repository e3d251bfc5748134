"""Split a SQL file into separately executable statements.

This is a delimiter heuristic, not a SQL parser. A ``;`` counts as a top-level
boundary only when the next non-blank text starts a new statement keyword, a
``--`` or ``/*`` comment, or the end of input. Terminators inside function bodies followed
by anything else (``END;`` then ``$$ LANGUAGE ...``) are left alone. Bodies that
contain one of the leading keywords right after an inner terminator will still
be split in the wrong place.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List

STATEMENT_KEYWORDS = (
    "CREATE",
    "DROP",
    "ALTER",
    "GRANT",
    "INSERT",
    "UPDATE",
    "DELETE",
    "BEGIN",
    "COMMIT",
    "ROLLBACK",
)

_BOUNDARY_RE = re.compile(
    r";\s*(?=(?:" + "|".join(STATEMENT_KEYWORDS) + r")\b|--|/\*|$)",
    re.IGNORECASE,
)
_LINE_COMMENT_RE = re.compile(r"--[^\n]*")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


def is_comment_only(fragment: str) -> bool:
    """Return True when ``fragment`` holds nothing but comments and whitespace."""
    stripped = _BLOCK_COMMENT_RE.sub("", fragment)
    stripped = _LINE_COMMENT_RE.sub("", stripped)
    return not stripped.strip()


def split_statements(text: str) -> List[str]:
    """Split raw SQL text into trimmed statements without their terminators.

    Args:
        text (str): SQL file content.

    Returns:
        List[str]: Non-empty statements in file order; comment-only fragments dropped.
    """
    if not text or not text.strip():
        return []
    statements: List[str] = []
    for fragment in _BOUNDARY_RE.split(text):
        candidate = fragment.strip()
        if not candidate or is_comment_only(candidate):
            continue
        statements.append(candidate)
    return statements


def statement_batch(text: str, *, split: bool = True) -> List[str]:
    """Return the statements to submit for ``text``; one whole-file statement when ``split`` is off."""
    if split:
        return split_statements(text)
    body = (text or "").strip()
    if not body or is_comment_only(body):
        return []
    return [body]


def read_statements(path: Path, *, split: bool = True) -> List[str]:
    """Read a SQL file and return its statement batch."""
    return statement_batch(Path(path).read_text(encoding="utf-8"), split=split)
