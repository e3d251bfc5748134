"""Textual rewrite of table references inside function definitions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple


@dataclass(frozen=True)
class RewriteResult:
    """Rewritten SQL and how many references were replaced."""

    sql: str
    replacements: int

    @property
    def changed(self) -> bool:
        return self.replacements > 0


def table_reference_pattern(table: str) -> re.Pattern:
    """Match ``table`` or ``public.table`` as a whole identifier, case-insensitively.

    References qualified with any other schema (``auth.table``) are not matched.
    """
    return re.compile(
        r"(?<![\w.])(?:(?P<schema>public)\.)?" + re.escape(table) + r"(?![\w])",
        re.IGNORECASE,
    )


def rewrite_table_references(sql: str, old_table: str, new_table: str) -> RewriteResult:
    """Replace references to ``old_table`` with ``new_table``, keeping a ``public.`` qualifier."""
    if not old_table or not new_table:
        raise ValueError("Both old and new table names are required.")
    pattern = table_reference_pattern(old_table)

    def _replace(match: re.Match) -> str:
        schema = match.group("schema")
        return f"{schema}.{new_table}" if schema else new_table

    rewritten, count = pattern.subn(_replace, sql or "")
    return RewriteResult(sql=rewritten, replacements=count)


def rewrite_definitions(
    definitions: Sequence[Tuple[str, str]], old_table: str, new_table: str
) -> List[Tuple[str, RewriteResult]]:
    """Rewrite each ``(name, definition)`` pair, keeping only the ones that changed."""
    changed: List[Tuple[str, RewriteResult]] = []
    for name, definition in definitions:
        result = rewrite_table_references(definition, old_table, new_table)
        if result.changed:
            changed.append((name, result))
    return changed
