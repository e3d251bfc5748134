"""Guard against applying SQL that drops or wipes core objects without confirmation."""

from __future__ import annotations

import re
from typing import Callable, List, Tuple

DANGEROUS_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"DROP\s+SCHEMA", re.IGNORECASE), "DROP SCHEMA"),
    (re.compile(r"DROP\s+DATABASE", re.IGNORECASE), "DROP DATABASE"),
    (re.compile(r"TRUNCATE\s+auth\.users", re.IGNORECASE), "TRUNCATE auth.users"),
    (re.compile(r"DELETE\s+FROM\s+auth\.users", re.IGNORECASE), "DELETE FROM auth.users"),
    (re.compile(r"DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?profiles\b(?!\s+CASCADE)", re.IGNORECASE), "DROP TABLE profiles"),
    (re.compile(r"DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?marriages\b(?!\s+CASCADE)", re.IGNORECASE), "DROP TABLE marriages"),
]


def find_dangerous_operations(sql: str) -> List[str]:
    """Return labels of dangerous operations present in ``sql``."""
    return [label for pattern, label in DANGEROUS_PATTERNS if pattern.search(sql or "")]


def confirm(prompt: str, *, input_fn: Callable[[str], str] = input) -> bool:
    """Ask the operator a yes/no question; only a literal ``yes`` proceeds."""
    try:
        answer = input_fn(prompt)
    except EOFError:
        return False
    return str(answer or "").strip().lower() == "yes"
