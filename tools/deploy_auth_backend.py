#!/usr/bin/env python
"""Apply the phone sign-in backend SQL and confirm its lookup functions answer."""

from __future__ import annotations

import sys
from pathlib import Path

try:
    from supadeploy.cli.entrypoints import run_batch, run_command
except ModuleNotFoundError:
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
    from supadeploy.cli.entrypoints import run_batch, run_command
from supadeploy.core.config import SENTINEL_UUID, load_credentials, load_settings
from supadeploy.remote.client import open_client
from supadeploy.services.reporter import Reporter
from supadeploy.services.statements import read_statements
from supadeploy.services.verifier import print_report, verify_functions

SQL_PATH = Path(__file__).resolve().parents[1] / "sql" / "auth_backend.sql"
AUTH_FUNCTIONS = {
    "search_profiles_by_name_chain": {"p_name_chain": "test"},
    "get_profile_tree_context": {"p_profile_id": SENTINEL_UUID},
}


def deploy(_args: object = None) -> int:
    settings = load_settings()
    credentials = load_credentials(key_policy="service_role")
    reporter = Reporter()

    statements = read_statements(SQL_PATH)
    client = open_client(credentials, timeout=settings.request_timeout)
    reporter.step(f"Deploying authentication backend ({len(statements)} statements)")
    sql = SQL_PATH.read_text(encoding="utf-8")
    if not run_batch(settings, client, statements, sql=sql, source=str(SQL_PATH), reporter=reporter):
        return 1

    reporter.step("Verifying authentication functions")
    report = verify_functions(client, AUTH_FUNCTIONS, phrases=settings.not_found_phrases)
    print_report(reporter, report)
    if not report.ok:
        reporter.error("Auth backend is incomplete: " + ", ".join(report.missing))
        return 1
    reporter.ok("Authentication backend deployed")
    return 0


def main() -> int:
    return run_command(deploy, None)


if __name__ == "__main__":
    raise SystemExit(main())
