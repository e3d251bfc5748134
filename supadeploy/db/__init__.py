"""Database helpers for direct Postgres catalog access."""

from .connection import (
    connect,
    fetch_function_definitions,
    get_database_url,
    list_public_functions,
    list_public_tables,
)

__all__ = [
    "connect",
    "fetch_function_definitions",
    "get_database_url",
    "list_public_functions",
    "list_public_tables",
]
