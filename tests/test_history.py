"""Tests for migration listing, choice resolution, and the history file."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from supadeploy.services import history


def test_list_migrations_sorted_sql_only(tmp_path: Path) -> None:
    for name in ("010_b.sql", "002_a.sql", ".hidden.sql", "notes.md"):
        (tmp_path / name).write_text("", encoding="utf-8")
    (tmp_path / "sub.sql").mkdir()
    assert history.list_migrations(tmp_path) == ["002_a.sql", "010_b.sql"]
    assert history.list_migrations(tmp_path / "missing") == []


def test_resolve_migration_path_variants(tmp_path: Path) -> None:
    root = tmp_path
    migrations = tmp_path / "supabase" / "migrations"
    available = ["001_init.sql", "002_auth.sql"]
    resolve = history.resolve_migration_path
    assert resolve("2", project_root=root, migrations_dir=migrations, available=available) == migrations / "002_auth.sql"
    assert resolve("003_new", project_root=root, migrations_dir=migrations) == migrations / "003_new.sql"
    assert resolve("sql/fix.sql", project_root=root, migrations_dir=migrations) == root / "sql" / "fix.sql"
    absolute = tmp_path / "elsewhere" / "x.sql"
    assert resolve(str(absolute), project_root=root, migrations_dir=migrations) == absolute
    assert resolve("9", project_root=root, migrations_dir=migrations, available=available) == migrations / "9.sql"


def test_append_history_records_operator(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("USER", "deployer")
    path = tmp_path / "supabase" / "migration-history.json"
    when = datetime(2025, 1, 17, 12, 0, tzinfo=timezone.utc)
    entry = history.append_history(path, "001_init.sql", deployed_at=when)
    assert entry == {"file": "001_init.sql", "deployed_at": "2025-01-17T12:00:00+00:00", "deployed_by": "deployer"}

    monkeypatch.delenv("USER")
    history.append_history(path, "002_auth.sql")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert [item["file"] for item in data] == ["001_init.sql", "002_auth.sql"]
    assert data[1]["deployed_by"] == "unknown"
    assert history.load_history(path) == data
