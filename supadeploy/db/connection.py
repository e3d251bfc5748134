"""Direct Postgres access for catalog lookups when a database URL is configured."""

from __future__ import annotations

import os
from typing import List, Tuple

from psycopg import Connection
from psycopg import connect as pg_connect


DATABASE_URL_ENV_KEYS = ("SUPABASE_DB_URL", "DATABASE_URL")


def get_database_url(explicit_db_url: str | None = None, *, required: bool = True) -> str | None:
    """Resolve Postgres DSN from explicit value or environment."""
    value = (explicit_db_url or "").strip()
    if not value:
        for key in DATABASE_URL_ENV_KEYS:
            value = (os.environ.get(key) or "").strip()
            if value:
                break
    if not value and required:
        raise RuntimeError("SUPABASE_DB_URL or DATABASE_URL is required.")
    return value or None


def connect(db_url: str | None = None, *, autocommit: bool = True) -> Connection:
    """Open a psycopg3 connection."""
    resolved = get_database_url(db_url, required=True)
    return pg_connect(resolved, autocommit=autocommit)


def list_public_functions(conn: Connection) -> List[str]:
    """Return distinct function names in the ``public`` schema, sorted."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT DISTINCT p.proname
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = 'public'
            ORDER BY p.proname
            """
        )
        rows = cur.fetchall() or []
    return [str(row[0]) for row in rows]


def list_public_tables(conn: Connection) -> List[str]:
    """Return base table names in the ``public`` schema, sorted."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        )
        rows = cur.fetchall() or []
    return [str(row[0]) for row in rows]


def fetch_function_definitions(conn: Connection, mentioning: str) -> List[Tuple[str, str]]:
    """Return ``(name, definition)`` for public functions whose source mentions ``mentioning``.

    Args:
        conn (Connection): Open DB connection.
        mentioning (str): Literal substring searched case-insensitively in ``prosrc``; ``_`` and ``%`` are not wildcards.

    Returns:
        List[Tuple[str, str]]: Full ``CREATE OR REPLACE FUNCTION`` texts from ``pg_get_functiondef``.
    """
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT p.proname, pg_get_functiondef(p.oid)
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = 'public'
              AND p.prokind = 'f'
              AND position(lower(%s) in lower(p.prosrc)) > 0
            ORDER BY p.proname
            """,
            (mentioning,),
        )
        rows = cur.fetchall() or []
    return [(str(row[0]), str(row[1])) for row in rows]
