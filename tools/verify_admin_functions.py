#!/usr/bin/env python
"""Check that the admin dashboard functions exist on the configured project."""

from __future__ import annotations

import sys
from pathlib import Path

try:
    from supadeploy.cli.entrypoints import run_command
except ModuleNotFoundError:
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
    from supadeploy.cli.entrypoints import run_command
from supadeploy.core.config import load_credentials, load_settings
from supadeploy.remote.client import open_client
from supadeploy.services.reporter import Reporter
from supadeploy.services.verifier import print_report, verify_functions

# Read-only functions only; anything that writes must not be probed.
ADMIN_FUNCTIONS = {
    "is_admin": {},
    "get_admin_statistics": {},
    "search_name_chain": {"p_names": ["test"], "p_limit": 1},
}


def verify(_args: object = None) -> int:
    settings = load_settings()
    credentials = load_credentials(key_policy="prefer_service_role")
    reporter = Reporter()
    client = open_client(credentials, timeout=settings.request_timeout)

    reporter.step(f"Checking {len(ADMIN_FUNCTIONS)} admin functions")
    report = verify_functions(client, ADMIN_FUNCTIONS, phrases=settings.not_found_phrases)
    print_report(reporter, report)
    if not report.ok:
        reporter.error("Deploy the missing admin functions before using the dashboard.")
        return 1
    return 0


def main() -> int:
    return run_command(verify, None)


if __name__ == "__main__":
    raise SystemExit(main())
