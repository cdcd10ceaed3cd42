"""Database utilities for the export index.

Provides reusable functions for:
- Connection setup and pragmas
- Probing tables in source databases
- Bulk inserts inside a caller-owned transaction
- Row-to-dict queries
"""

import sqlite3
from pathlib import Path
from typing import List, Dict, Any


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite performance and reliability pragmas.

    - WAL mode so readers keep seeing the old rows of a date while it is
      being re-indexed
    - NORMAL synchronous mode for speed without data loss
    - Memory temp store and a larger page cache

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA temp_store=MEMORY")
    conn.execute("PRAGMA cache_size=-64000")


def open_connection(db_path: Path, read_only: bool = False,
                    timeout: float = 10.0) -> sqlite3.Connection:
    """Open a SQLite connection with ``sqlite3.Row`` rows.

    Read-only connections use a ``mode=ro`` URI and never touch the journal
    mode, so they are safe to point at exported source files. Writable
    connections run in autocommit mode (``isolation_level=None``) so the
    caller controls transactions with explicit BEGIN/COMMIT.

    Args:
        db_path: Path to the SQLite database file.
        read_only: Open the file read-only.
        timeout: Busy timeout in seconds.
    """
    if read_only:
        uri = f"file:{Path(db_path).resolve().as_posix()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True, timeout=timeout)
        conn.row_factory = sqlite3.Row
        return conn
    conn = sqlite3.connect(str(db_path), timeout=timeout,
                           isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        init_pragmas(conn)
        conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check if a table exists in the database.

    Args:
        conn: SQLite connection
        table: Table name

    Returns:
        True if table exists, False otherwise
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table,)
    )
    return cursor.fetchone() is not None


def list_tables(conn: sqlite3.Connection) -> List[str]:
    """Return the names of all user tables in the database."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' "
        "AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetchall()
    return [r[0] for r in rows]


def get_table_count(conn: sqlite3.Connection, table: str,
                    where: str = "", params: tuple = ()) -> int:
    """Get row count for a table, optionally filtered by a WHERE fragment.

    Args:
        conn: SQLite connection
        table: Table name (trusted, never user input)
        where: Optional condition without the WHERE keyword
        params: Parameters for ``where``

    Returns:
        Number of matching rows
    """
    sql = f"SELECT COUNT(*) FROM {table}"
    if where:
        sql += f" WHERE {where}"
    result = conn.execute(sql, params).fetchone()
    return result[0] if result else 0


def insert_rows(conn: sqlite3.Connection, table: str, columns: List[str],
                rows: List[tuple], batch_size: int = 1000) -> int:
    """Insert rows in batches without committing.

    Unlike a commit-per-batch loader this never ends the transaction, so a
    whole date can be replaced atomically by the caller.

    Args:
        conn: SQLite connection with an open transaction
        table: Target table name
        columns: Column names matching each tuple in ``rows``
        rows: Value tuples
        batch_size: Number of rows per executemany call

    Returns:
        Total number of rows inserted
    """
    if not rows:
        return 0
    cols_str = ", ".join(columns)
    placeholders = ", ".join("?" * len(columns))
    sql = f"INSERT INTO {table} ({cols_str}) VALUES ({placeholders})"

    total = 0
    for i in range(0, len(rows), batch_size):
        batch = rows[i:i + batch_size]
        conn.executemany(sql, batch)
        total += len(batch)
    return total


def query_to_dicts(conn: sqlite3.Connection, query: str,
                   params: tuple = ()) -> List[Dict[str, Any]]:
    """Execute query and return results as list of dicts.

    Args:
        conn: SQLite connection (must have row_factory set)
        query: SQL query string
        params: Query parameters tuple

    Returns:
        List of row dicts
    """
    cursor = conn.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]
