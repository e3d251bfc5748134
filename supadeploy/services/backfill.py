"""Move values from a legacy column into its replacement, one row at a time over REST."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from supadeploy.core.errors import RemoteCallError
from supadeploy.core.logging_utils import log_event


@dataclass
class BackfillPlan:
    """Rows selected for a column backfill."""

    table: str
    key_column: str
    source_column: str
    target_column: str
    rows: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class BackfillSummary:
    """Per-row outcome counts for an applied backfill."""

    updated: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


def plan_backfill(
    client: Any,
    table: str,
    source_column: str,
    target_column: str,
    *,
    key_column: str = "id",
    page_size: int = 500,
) -> BackfillPlan:
    """Select rows with a value in ``source_column`` and none in ``target_column``.

    Pages through the table ordered by ``key_column`` until a page comes back empty.
    The offset advances by the rows actually returned, since the server may cap a page
    below ``page_size``.
    """
    plan = BackfillPlan(table=table, key_column=key_column, source_column=source_column, target_column=target_column)
    columns = [key_column, source_column, target_column]
    size = max(1, int(page_size))
    offset = 0
    while True:
        rows = client.fetch_rows(
            table,
            columns,
            not_null=[source_column],
            is_null=[target_column],
            order_by=key_column,
            offset=offset,
            limit=size,
        )
        if not rows:
            break
        plan.rows.extend(rows)
        offset += len(rows)
    return plan


def write_backup(plan: BackfillPlan, backups_dir: Path, *, now: Optional[datetime] = None) -> Path:
    """Write the planned rows to a timestamped JSON backup and return its path."""
    stamp = now or datetime.now(timezone.utc)
    directory = Path(backups_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{plan.table}-backfill-{stamp.strftime('%Y%m%dT%H%M%SZ')}.json"
    payload = {
        "timestamp": stamp.isoformat(),
        "table": plan.table,
        "key_column": plan.key_column,
        "source_column": plan.source_column,
        "target_column": plan.target_column,
        "rows": [
            {
                "key": row.get(plan.key_column),
                "source": row.get(plan.source_column),
                "target": row.get(plan.target_column),
            }
            for row in plan.rows
        ],
    }
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    return path


def apply_backfill(
    client: Any,
    plan: BackfillPlan,
    *,
    transform: Optional[Callable[[Any], Any]] = None,
    reporter: Any = None,
) -> BackfillSummary:
    """Copy each planned row's source value into the target column.

    A failed row is counted and reported; the remaining rows are still attempted.
    """
    summary = BackfillSummary()
    for row in plan.rows:
        key = row.get(plan.key_column)
        value = row.get(plan.source_column)
        if transform is not None:
            value = transform(value)
        try:
            client.update_row(plan.table, plan.key_column, key, {plan.target_column: value})
        except RemoteCallError as exc:
            summary.failed += 1
            summary.errors.append(f"{key}: {exc.message}")
            log_event("backfill_row_failed", {"table": plan.table, "key": key, "error": exc.message})
            if reporter is not None:
                reporter.error(f"Failed to update {plan.table}.{plan.key_column}={key}: {exc.message}")
            continue
        summary.updated += 1
    return summary
