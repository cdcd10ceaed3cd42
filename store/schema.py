"""
Index schema and version handling.

The index is a disposable cache of the source directories, so there are no
incremental migrations: whenever the stored version differs from
``SCHEMA_VERSION`` (or none is recorded, as in stores created before
versioning) every table is dropped and the schema recreated.  The lazy
indexing pass then repopulates it from disk.
"""

from __future__ import annotations

import logging
import sqlite3

from ingest.entities import Audit, Company, Evaluation, Mail, Person, field_names
from utils.database import list_tables

logger = logging.getLogger(__name__)

# Increment SCHEMA_VERSION whenever a CREATE statement below changes.
SCHEMA_VERSION = 4
SCHEMA_DESCRIPTION = "search_text covers region, found emails, middle name, role"

FLAG_COLUMNS = ("has_mail", "has_audit", "has_preview", "worthy_site", "has_email", "has_domain")

_REAL_FIELDS = frozenset({
    "domain_confidence", "people_count", "cost_sek",
    "overall", "design", "content", "usability", "mobile", "seo",
})

# Columns written per table, in insert order (after id/date)
COMPANY_COLUMNS = ("company_key",) + field_names(Company) + FLAG_COLUMNS + ("search_text",)
PERSON_COLUMNS = field_names(Person) + ("role_kind", "search_text")

TABLE_COLUMNS = {
    "companies": COMPANY_COLUMNS,
    "people": PERSON_COLUMNS,
    "mails": field_names(Mail),
    "audits": field_names(Audit),
    "evaluations": field_names(Evaluation),
}
CONTENT_TABLES = tuple(TABLE_COLUMNS)


def _column_type(name: str) -> str:
    if name in FLAG_COLUMNS:
        return "INTEGER NOT NULL DEFAULT 0"
    if name in _REAL_FIELDS:
        return "REAL"
    return "TEXT"


def _table_ddl(table: str) -> str:
    cols = ",\n            ".join(
        f"{c} {_column_type(c)}" for c in TABLE_COLUMNS[table]
    )
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            date TEXT NOT NULL,
            {cols}
        )"""


_SCHEMA_STATEMENTS = [_table_ddl(t) for t in CONTENT_TABLES] + [
    "CREATE INDEX IF NOT EXISTS idx_companies_date    ON companies(date)",
    "CREATE INDEX IF NOT EXISTS idx_companies_key     ON companies(company_key)",
    "CREATE INDEX IF NOT EXISTS idx_companies_segment ON companies(segment)",
    "CREATE INDEX IF NOT EXISTS idx_companies_region  ON companies(region)",
    "CREATE INDEX IF NOT EXISTS idx_people_date       ON people(date)",
    "CREATE INDEX IF NOT EXISTS idx_people_key        ON people(personal_id, registration_id)",
    "CREATE INDEX IF NOT EXISTS idx_mails_date        ON mails(date, folder_id)",
    "CREATE INDEX IF NOT EXISTS idx_audits_date       ON audits(date, folder_id)",
    "CREATE INDEX IF NOT EXISTS idx_evaluations_date  ON evaluations(date, folder_id)",
    # One row per fully indexed date; absence means "index on next query"
    """
        CREATE TABLE IF NOT EXISTS indexed_dates (
            date           TEXT PRIMARY KEY,
            updated_at     TEXT NOT NULL,
            provenance     TEXT,
            companies      INTEGER DEFAULT 0,
            people         INTEGER DEFAULT 0,
            mails          INTEGER DEFAULT 0,
            audits         INTEGER DEFAULT 0,
            evaluations    INTEGER DEFAULT 0,
            source_errors  INTEGER DEFAULT 0
        )""",
    """
        CREATE TABLE IF NOT EXISTS _schema_version (
            version      INTEGER PRIMARY KEY,
            description  TEXT,
            applied_at   TEXT DEFAULT (datetime('now'))
        )""",
]


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every index table and record the version.

    Statements run one by one (not ``executescript``) so they stay inside
    the caller's transaction.
    """
    for stmt in _SCHEMA_STATEMENTS:
        conn.execute(stmt)
    conn.execute(
        "INSERT OR REPLACE INTO _schema_version (version, description) VALUES (?, ?)",
        (SCHEMA_VERSION, SCHEMA_DESCRIPTION),
    )


def current_version(conn: sqlite3.Connection) -> int:
    """Return the recorded schema version (0 if none recorded)."""
    try:
        row = conn.execute("SELECT MAX(version) FROM _schema_version").fetchone()
        return row[0] or 0
    except sqlite3.OperationalError:
        # _schema_version table doesn't exist yet
        return 0


def drop_all(conn: sqlite3.Connection) -> list[str]:
    """Drop every user table, including ones left by older layouts."""
    dropped = list_tables(conn)
    for table in dropped:
        conn.execute(f'DROP TABLE IF EXISTS "{table}"')
    return dropped


def ensure_schema(conn: sqlite3.Connection) -> bool:
    """Bring *conn* (autocommit mode) to ``SCHEMA_VERSION``.

    Returns:
        True when the store was (re)built, False when it was already current.
    """
    found = current_version(conn)
    if found == SCHEMA_VERSION:
        return False
    conn.execute("BEGIN IMMEDIATE")
    try:
        # Re-check under the write lock; another connection may have won
        if current_version(conn) == SCHEMA_VERSION:
            conn.execute("COMMIT")
            return False
        dropped = drop_all(conn)
        create_schema(conn)
        conn.execute("COMMIT")
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    if dropped:
        logger.info("Index schema v%s != v%s: dropped %d tables and rebuilt",
                    found, SCHEMA_VERSION, len(dropped))
    return True
