"""Shared DuckDB connection factory."""

import duckdb

from photo_curator.config import DB_PATH


def get_connection(db_path: str | None = None) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB connection. Defaults to the project-root DB file."""
    path = db_path or str(DB_PATH)
    conn = duckdb.connect(path)

    from photo_curator.library.schema import ensure_schema

    ensure_schema(conn)
    return conn
