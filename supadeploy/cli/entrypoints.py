"""Primary CLI entrypoints for applying SQL, verifying functions, diagnosing schema, and migrating legacy usage."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from supadeploy.core.config import Settings, load_credentials, load_settings
from supadeploy.core.errors import MissingCredentialsError, RemoteCallError, StatementExecutionError, SupadeployError
from supadeploy.db.connection import connect, fetch_function_definitions
from supadeploy.remote.client import open_client
from supadeploy.services.backfill import apply_backfill, plan_backfill, write_backup
from supadeploy.services.diagnose import diagnose_schema, print_diagnosis
from supadeploy.services.executor import StatementExecutor
from supadeploy.services.history import append_history, list_migrations, load_history, resolve_migration_path
from supadeploy.services.reporter import Reporter, save_manual_sql
from supadeploy.services.rewrite import rewrite_definitions
from supadeploy.services.safety import confirm, find_dangerous_operations
from supadeploy.services.statements import statement_batch
from supadeploy.services.verifier import print_report, sentinel_params, verify_functions


def _settings(args: argparse.Namespace) -> Settings:
    config_path = getattr(args, "config", None)
    return load_settings(Path(config_path) if config_path else None)


def _parse_params(pairs: Optional[List[str]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for item in pairs or []:
        if "=" not in item:
            raise SupadeployError(f"Expected KEY=VALUE, got: {item}")
        key, value = item.split("=", 1)
        params[key.strip()] = value
    return params


def run_batch(
    settings: Settings,
    client: Any,
    statements: List[str],
    *,
    sql: str,
    source: str,
    reporter: Reporter,
) -> bool:
    """Apply ``statements``; on failure print the manual-deploy fallback and return False."""
    executor = StatementExecutor(
        client,
        rpc_name=settings.exec_rpc,
        param_name=settings.exec_param,
        reporter=reporter,
    )
    try:
        result = executor.run(statements)
    except StatementExecutionError as exc:
        reporter.error(str(exc))
        reporter.line(
            f"{len(exc.applied)} of {len(statements)} statement(s) were applied before the failure; "
            "nothing was rolled back."
        )
        saved = save_manual_sql(settings.fallback_sql_path, sql)
        reporter.manual_deploy(sql, source=source, saved_to=saved)
        return False
    note = f" ({result.fallbacks} via direct request)" if result.fallbacks else ""
    reporter.ok(f"Applied {len(result.applied)} statement(s){note}")
    return True


def cmd_apply(args: argparse.Namespace) -> int:
    """Apply one SQL file statement by statement.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    settings = _settings(args)
    reporter = Reporter()
    credentials = load_credentials(key_policy="service_role")

    if args.sql:
        path = resolve_migration_path(args.sql, project_root=settings.project_root, migrations_dir=settings.migrations_dir)
    else:
        available = list_migrations(settings.migrations_dir)
        if not available:
            reporter.error(f"No migration files found in {settings.migrations_dir}")
            return 1
        reporter.line("Available migrations:")
        for number, name in enumerate(available, start=1):
            reporter.line(f"  {number}. {name}")
        choice = input("Enter migration number or filename: ")
        path = resolve_migration_path(
            choice,
            project_root=settings.project_root,
            migrations_dir=settings.migrations_dir,
            available=available,
        )
    if not path.exists():
        reporter.error(f"Migration file not found: {path}")
        return 1

    sql = path.read_text(encoding="utf-8")
    reporter.line(f"Migration: {path.name} ({len(sql.encode('utf-8')) / 1024:.2f} KB)")

    dangerous = find_dangerous_operations(sql)
    if dangerous and not args.yes:
        for label in dangerous:
            reporter.warn(f"Contains potentially dangerous operation: {label}")
        if not confirm("Do you want to proceed? (yes/no): "):
            reporter.error("Migration cancelled by operator")
            return 1

    statements = statement_batch(sql, split=not args.no_split)
    if not statements:
        reporter.warn("No statements found; nothing to apply.")
        return 0

    client = open_client(credentials, timeout=settings.request_timeout)
    if not run_batch(settings, client, statements, sql=sql, source=str(path), reporter=reporter):
        return 1
    try:
        append_history(settings.history_path, path.name)
    except json.JSONDecodeError as exc:
        reporter.warn(f"Migration applied but {settings.history_path} is unreadable and was not updated: {exc}")
    reporter.ok(f"Migration {path.name} completed")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify that remote functions exist.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: ``0`` when every function exists, else ``1``.
    """
    settings = _settings(args)
    reporter = Reporter()
    credentials = load_credentials(key_policy="anon" if args.anon else "prefer_service_role")

    overrides: Dict[str, Any] = _parse_params(args.param)
    overrides.update(sentinel_params(args.uuid_param))
    if args.names:
        specs = {name: {**settings.verify_functions.get(name, {}), **overrides} for name in args.names}
    else:
        specs = {name: {**params, **overrides} for name, params in settings.verify_functions.items()}

    client = open_client(credentials, timeout=settings.request_timeout)
    reporter.step(f"Verifying {len(specs)} function(s) with {credentials.key_kind} key")
    try:
        report = verify_functions(client, specs, phrases=settings.not_found_phrases)
    except RemoteCallError as exc:
        reporter.error(f"Cannot connect to project: {exc.message}")
        return 1
    print_report(reporter, report)
    if not report.ok:
        reporter.error("Missing functions: " + ", ".join(report.missing))
        return 1
    return 0


def cmd_diagnose(args: argparse.Namespace) -> int:
    """Report which expected tables and functions exist.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: ``0`` when nothing is missing, else ``1``.
    """
    settings = _settings(args)
    reporter = Reporter()
    credentials = load_credentials(key_policy="prefer_service_role")
    client = open_client(credentials, timeout=settings.request_timeout)

    conn = None
    if settings.database_url and not args.no_catalog:
        conn = connect(settings.database_url)
    try:
        diagnosis = diagnose_schema(
            client,
            tables=list(settings.diagnose_tables),
            functions=settings.verify_functions,
            phrases=settings.not_found_phrases,
            conn=conn,
        )
    except RemoteCallError as exc:
        reporter.error(f"Cannot connect to project: {exc.message}")
        return 1
    finally:
        if conn is not None:
            conn.close()
    print_diagnosis(reporter, diagnosis)
    if not diagnosis.ok:
        reporter.error("Schema is incomplete; apply the missing migrations.")
        return 1
    reporter.ok("Schema looks complete")
    return 0


def cmd_rewrite(args: argparse.Namespace) -> int:
    """Rewrite function definitions off a legacy table and optionally apply them.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    settings = _settings(args)
    reporter = Reporter()
    credentials = load_credentials(key_policy="service_role") if args.apply else None

    if args.from_db:
        if not settings.database_url:
            reporter.error("--from-db needs SUPABASE_DB_URL or DATABASE_URL.")
            return 1
        conn = connect(settings.database_url)
        try:
            definitions = fetch_function_definitions(conn, args.old)
        finally:
            conn.close()
        source = "catalog"
    else:
        if not args.sql:
            reporter.error("Provide --sql PATH or --from-db.")
            return 1
        path = Path(args.sql)
        if not path.is_absolute():
            path = settings.project_root / path
        if not path.exists():
            reporter.error(f"SQL file not found: {path}")
            return 1
        definitions = [(path.name, path.read_text(encoding="utf-8"))]
        source = str(path)

    changed = rewrite_definitions(definitions, args.old, args.new)
    if not changed:
        reporter.warn(f"No references to {args.old} found; nothing to rewrite.")
        return 0
    for name, result in changed:
        reporter.line(f"  {name}: {result.replacements} reference(s) to {args.old} -> {args.new}")
    rewritten_sql = "\n\n".join(result.sql.rstrip().rstrip(";") + ";" for _, result in changed)

    if args.out:
        out_path = Path(args.out)
        if not out_path.is_absolute():
            out_path = settings.project_root / out_path
        save_manual_sql(out_path, rewritten_sql)
        reporter.ok(f"Rewritten SQL written to {out_path}")
    if not args.apply:
        reporter.line("Dry run; pass --apply to deploy the rewritten definitions.")
        return 0

    if args.from_db or args.no_split:
        statements = [result.sql.strip() for _, result in changed]
    else:
        statements = statement_batch(rewritten_sql)
    client = open_client(credentials, timeout=settings.request_timeout)
    return 0 if run_batch(settings, client, statements, sql=rewritten_sql, source=source, reporter=reporter) else 1


def cmd_backfill(args: argparse.Namespace) -> int:
    """Copy legacy column values into their replacement column.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: ``0`` when every row was updated, else ``1``.
    """
    settings = _settings(args)
    reporter = Reporter()
    credentials = load_credentials(key_policy="service_role")
    client = open_client(credentials, timeout=settings.request_timeout)

    reporter.step(f"Selecting {args.table} rows with {args.from_column} set and {args.to_column} empty")
    plan = plan_backfill(
        client,
        args.table,
        args.from_column,
        args.to_column,
        key_column=args.key_column,
        page_size=args.page_size,
    )
    reporter.line(f"Found {len(plan.rows)} row(s) to migrate")
    if not plan.rows:
        reporter.ok("Nothing to migrate")
        return 0
    backup = write_backup(plan, settings.backups_dir)
    reporter.line(f"Backup saved to: {backup}")
    if args.dry_run:
        reporter.ok("Dry run; no rows updated")
        return 0

    summary = apply_backfill(client, plan, reporter=reporter)
    reporter.line(f"Updated: {summary.updated}")
    if not summary.ok:
        reporter.error(f"Failed: {summary.failed}")
        return 1
    reporter.ok("Backfill complete")
    return 0


def cmd_migrations(args: argparse.Namespace) -> int:
    """List migration files and mark the ones recorded in the history file."""
    settings = _settings(args)
    reporter = Reporter()
    available = list_migrations(settings.migrations_dir)
    if not available:
        reporter.line(f"No migration files found in {settings.migrations_dir}")
        return 0
    deployed = {str(entry.get("file")) for entry in load_history(settings.history_path) if isinstance(entry, dict)}
    for number, name in enumerate(available, start=1):
        marker = "applied" if name in deployed else "pending"
        reporter.line(f"  {number:>3}. [{marker}] {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser.
    """
    p = argparse.ArgumentParser(prog="supadeploy")
    p.add_argument("--config", type=str, default=None, help="Path to supadeploy.toml")
    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("apply", help="Apply a SQL file statement by statement")
    a.add_argument("--sql", type=str, default=None, help="File path or migration name; prompts when omitted")
    a.add_argument("--no-split", action="store_true", help="Submit the whole file as one statement")
    a.add_argument("--yes", action="store_true", help="Skip the dangerous-operation confirmation")
    a.set_defaults(func=cmd_apply)

    v = sub.add_parser("verify", help="Check that remote functions exist")
    v.add_argument("names", nargs="*", help="Function names (defaults to the configured list)")
    v.add_argument("--param", action="append", default=[], help="Sentinel KEY=VALUE sent to every function")
    v.add_argument("--uuid-param", action="append", default=[], help="Parameter name sent the all-zero UUID")
    v.add_argument("--anon", action="store_true", help="Call functions with the anonymous key, as app clients do")
    v.set_defaults(func=cmd_verify)

    d = sub.add_parser("diagnose", help="Report missing tables and functions")
    d.add_argument("--no-catalog", action="store_true", help="Skip the direct pg_proc cross-check")
    d.set_defaults(func=cmd_diagnose)

    r = sub.add_parser("rewrite", help="Rewrite function definitions to use another table")
    r.add_argument("--sql", type=str, default=None)
    r.add_argument("--from-db", action="store_true", help="Read definitions from the live catalog")
    r.add_argument("--old", type=str, required=True, help="Legacy table name")
    r.add_argument("--new", type=str, required=True, help="Replacement table name")
    r.add_argument("--out", type=str, default=None, help="Write the rewritten SQL to this file")
    r.add_argument("--no-split", action="store_true")
    r.add_argument("--apply", action="store_true", help="Deploy the rewritten definitions")
    r.set_defaults(func=cmd_rewrite)

    b = sub.add_parser("backfill", help="Copy a legacy column into its replacement")
    b.add_argument("--table", type=str, required=True)
    b.add_argument("--from-column", type=str, required=True)
    b.add_argument("--to-column", type=str, required=True)
    b.add_argument("--key-column", type=str, default="id")
    b.add_argument("--page-size", type=int, default=500)
    b.add_argument("--dry-run", action="store_true", help="Plan and back up only")
    b.set_defaults(func=cmd_backfill)

    m = sub.add_parser("migrations", help="List migration files and their recorded status")
    m.set_defaults(func=cmd_migrations)

    return p


def run_command(func: Callable[[Any], int], args: Any, *, reporter: Optional[Reporter] = None) -> int:
    """Run one command and turn any failure into exit status 1.

    Args:
        func (Callable[[Any], int]): Command function.
        args (Any): Argument namespace passed through to ``func``.
        reporter (Optional[Reporter]): Error output; defaults to stderr.

    Returns:
        int: Process return code.
    """
    reporter = reporter or Reporter()
    try:
        return int(func(args) or 0)
    except MissingCredentialsError as exc:
        reporter.error(str(exc))
        return 1
    except SupadeployError as exc:
        reporter.error(str(exc))
        return 1
    except Exception as exc:
        reporter.error(f"Unexpected error: {exc}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for supadeploy.

    Returns:
        int: Process return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    return run_command(args.func, args)


if __name__ == "__main__":
    raise SystemExit(main())
