"""Schema state report: which expected tables and functions the project exposes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from supadeploy.core.config import DEFAULT_NOT_FOUND_PHRASES
from supadeploy.core.errors import RemoteCallError
from supadeploy.db.connection import list_public_functions, list_public_tables
from supadeploy.services.verifier import VerificationReport, verify_functions

TABLE_MISSING_MARKERS = ("PGRST205", "42P01", "does not exist", "Could not find the table")


@dataclass(frozen=True)
class TableProbe:
    """Whether one table answered a single-row read."""

    name: str
    exists: bool
    detail: str = ""


@dataclass
class SchemaDiagnosis:
    """Combined table, function, and optional catalog findings."""

    tables: List[TableProbe] = field(default_factory=list)
    functions: VerificationReport = field(default_factory=VerificationReport)
    catalog_missing: List[str] = field(default_factory=list)
    catalog_checked: bool = False

    @property
    def missing_tables(self) -> List[str]:
        return [probe.name for probe in self.tables if not probe.exists]

    @property
    def ok(self) -> bool:
        return not self.missing_tables and self.functions.ok and not self.catalog_missing


def _table_missing(exc: RemoteCallError) -> bool:
    if exc.code and str(exc.code) in TABLE_MISSING_MARKERS:
        return True
    text = exc.message.lower()
    return any(marker.lower() in text for marker in TABLE_MISSING_MARKERS)


def probe_table(client: Any, table: str) -> TableProbe:
    """Read one row from ``table``; a permission or other error still means the table exists.

    Raises:
        RemoteCallError: On transport failures, so callers can report the project unreachable.
    """
    try:
        client.probe_table(table)
    except RemoteCallError as exc:
        if exc.transport:
            raise
        if _table_missing(exc):
            return TableProbe(name=table, exists=False, detail=exc.message)
        return TableProbe(name=table, exists=True, detail=exc.message)
    return TableProbe(name=table, exists=True)


def diagnose_schema(
    client: Any,
    *,
    tables: Sequence[str],
    functions: Mapping[str, Mapping[str, Any]],
    phrases: Sequence[str] = tuple(DEFAULT_NOT_FOUND_PHRASES),
    conn: Optional[Any] = None,
) -> SchemaDiagnosis:
    """Probe ``tables`` and ``functions`` through the client, then cross-check the catalog when ``conn`` is given."""
    diagnosis = SchemaDiagnosis()
    for table in tables:
        diagnosis.tables.append(probe_table(client, table))
    diagnosis.functions = verify_functions(client, functions, phrases=phrases)
    if conn is not None:
        present_tables = set(list_public_tables(conn))
        present_functions = set(list_public_functions(conn))
        diagnosis.catalog_missing = [name for name in tables if name not in present_tables]
        diagnosis.catalog_missing.extend(name for name in functions if name not in present_functions)
        diagnosis.catalog_checked = True
    return diagnosis


def print_diagnosis(reporter: Any, diagnosis: SchemaDiagnosis) -> None:
    """Write the diagnosis as aligned status lines."""
    reporter.line("Tables:")
    for probe in diagnosis.tables:
        reporter.line(f"  {'exists' if probe.exists else 'MISSING':<10} {probe.name}")
    reporter.line("Functions:")
    for result in diagnosis.functions.results:
        reporter.line(f"  {'exists' if result.exists else 'NOT FOUND':<10} {result.name}")
    if diagnosis.catalog_checked:
        reporter.line("Catalog:")
        if diagnosis.catalog_missing:
            for name in diagnosis.catalog_missing:
                reporter.line(f"  {'ABSENT':<10} {name}")
        else:
            reporter.line("  all configured tables and functions present in the catalog")
