#!/usr/bin/env python
"""Point the admin role checks at ``profiles`` instead of the retired ``user_roles`` table and deploy them."""

from __future__ import annotations

import sys
from pathlib import Path

try:
    from supadeploy.cli.entrypoints import run_batch, run_command
except ModuleNotFoundError:
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
    from supadeploy.cli.entrypoints import run_batch, run_command
from supadeploy.core.config import load_credentials, load_settings
from supadeploy.remote.client import open_client
from supadeploy.services.reporter import Reporter
from supadeploy.services.rewrite import rewrite_table_references
from supadeploy.services.statements import split_statements

SQL_PATH = Path(__file__).resolve().parents[1] / "sql" / "admin_role_checks.sql"
OLD_TABLE = "user_roles"
NEW_TABLE = "profiles"


def fix(_args: object = None) -> int:
    settings = load_settings()
    credentials = load_credentials(key_policy="service_role")
    reporter = Reporter()

    result = rewrite_table_references(SQL_PATH.read_text(encoding="utf-8"), OLD_TABLE, NEW_TABLE)
    if not result.changed:
        reporter.ok(f"No {OLD_TABLE} references left in {SQL_PATH.name}")
        return 0
    reporter.line(f"Rewrote {result.replacements} reference(s) to {OLD_TABLE}")

    statements = split_statements(result.sql)
    client = open_client(credentials, timeout=settings.request_timeout)
    if not run_batch(settings, client, statements, sql=result.sql, source=str(SQL_PATH), reporter=reporter):
        return 1
    reporter.ok(f"Admin functions now read roles from {NEW_TABLE}")
    return 0


def main() -> int:
    return run_command(fix, None)


if __name__ == "__main__":
    raise SystemExit(main())
