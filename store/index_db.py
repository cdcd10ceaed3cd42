"""
Index Store — the on-disk SQLite cache of every indexed date.

One row per entity per date in five flat tables, plus ``indexed_dates``
marking which dates are complete.  Re-indexing a date is a single
``BEGIN IMMEDIATE`` transaction (delete the date's rows everywhere, insert
the merged rows, upsert the marker), so it is idempotent and concurrent
readers under WAL see either the old rows or the new ones.

Indexing the same date from two threads is serialised by a per-date lock;
different dates proceed in parallel up to SQLite's single-writer lock.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from ingest.entities import NormalizedData
from ingest.merge import derive_all_flags
from ingest.normalize import role_kind
from store.schema import CONTENT_TABLES, FLAG_COLUMNS, TABLE_COLUMNS, ensure_schema
from utils.database import get_table_count, insert_rows, open_connection, query_to_dicts
from utils.strings import build_search_text

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_date_locks: dict[tuple[str, str], threading.Lock] = {}


def _date_lock(index_path: Path, date: str) -> threading.Lock:
    key = (str(Path(index_path).resolve()), date)
    with _locks_guard:
        lock = _date_locks.get(key)
        if lock is None:
            lock = _date_locks[key] = threading.Lock()
        return lock


def company_search_text(c) -> str:
    return build_search_text(
        c.name, c.org_number, c.folder_id, c.seat, c.segment, c.region,
        c.email, c.emails_found, c.business_description,
    )


def person_search_text(p) -> str:
    return build_search_text(
        p.first_name, p.middle_name, p.last_name, p.company_name, p.org_number,
        p.registration_id, p.folder_id, p.role, p.city,
    )


def build_rows(data: NormalizedData) -> dict[str, list[tuple]]:
    """Turn a merged bundle into insert tuples per table (column order of TABLE_COLUMNS)."""
    rows: dict[str, list[tuple]] = {}

    flags = derive_all_flags(data)
    company_rows = []
    for company, f in zip(data.companies, flags):
        values = asdict(company)
        values["company_key"] = company.key
        values.update({name: int(v) for name, v in f.to_dict().items()})
        values["search_text"] = company_search_text(company)
        company_rows.append(tuple(values[c] for c in TABLE_COLUMNS["companies"]))
    rows["companies"] = company_rows

    person_rows = []
    for person in data.people:
        values = asdict(person)
        values["role_kind"] = role_kind(person.role)
        values["search_text"] = person_search_text(person)
        person_rows.append(tuple(values[c] for c in TABLE_COLUMNS["people"]))
    rows["people"] = person_rows

    for table in ("mails", "audits", "evaluations"):
        cols = TABLE_COLUMNS[table]
        rows[table] = [
            tuple(values[c] for c in cols)
            for values in map(asdict, getattr(data, table))
        ]
    return rows


class IndexStore:
    """File-backed index; every operation opens its own connection."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    # ── connections ───────────────────────────────────────────────────────

    def _open(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = open_connection(self.path)
        try:
            ensure_schema(conn)
        except BaseException:
            conn.close()
            raise
        return conn

    def open(self) -> sqlite3.Connection:
        """Open a connection on a current-schema store.

        A file that is not a SQLite database at all is deleted and
        recreated; busy/locked errors propagate unchanged.
        """
        try:
            return self._open()
        except sqlite3.OperationalError:
            raise
        except sqlite3.DatabaseError as exc:
            logger.warning("Index %s is unreadable (%s); deleting and rebuilding",
                           self.path, exc)
            self.clear()
            return self._open()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.open()
        try:
            yield conn
        finally:
            conn.close()

    # ── write path ────────────────────────────────────────────────────────

    def index_date(self, date: str, data: NormalizedData,
                   provenance: str = "unknown", source_errors: int = 0) -> int:
        """Replace every row of *date* with *data* in one transaction.

        Returns:
            Number of entity rows written.
        """
        rows = build_rows(data)
        with _date_lock(self.path, date), self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for table in CONTENT_TABLES:
                    conn.execute(f"DELETE FROM {table} WHERE date = ?", (date,))
                written = 0
                counts: dict[str, int] = {}
                for table in CONTENT_TABLES:
                    cols = ["date", *TABLE_COLUMNS[table]]
                    counts[table] = insert_rows(
                        conn, table, cols, [(date, *r) for r in rows[table]]
                    )
                    written += counts[table]
                conn.execute(
                    """
                    INSERT INTO indexed_dates
                        (date, updated_at, provenance, companies, people,
                         mails, audits, evaluations, source_errors)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(date) DO UPDATE SET
                        updated_at = excluded.updated_at,
                        provenance = excluded.provenance,
                        companies = excluded.companies,
                        people = excluded.people,
                        mails = excluded.mails,
                        audits = excluded.audits,
                        evaluations = excluded.evaluations,
                        source_errors = excluded.source_errors
                    """,
                    (date, datetime.now(timezone.utc).isoformat(timespec="seconds"),
                     provenance, counts["companies"], counts["people"],
                     counts["mails"], counts["audits"], counts["evaluations"],
                     source_errors),
                )
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        logger.info("Indexed %s: %d rows (%s)", date, written,
                    ", ".join(f"{t}={n}" for t, n in counts.items()))
        return written

    def remove_date(self, date: str) -> None:
        """Forget one date so the next lazy pass re-reads it."""
        with _date_lock(self.path, date), self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for table in CONTENT_TABLES:
                    conn.execute(f"DELETE FROM {table} WHERE date = ?", (date,))
                conn.execute("DELETE FROM indexed_dates WHERE date = ?", (date,))
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

    def clear(self) -> None:
        """Delete the index file and its WAL/SHM side files."""
        for suffix in ("", "-wal", "-shm"):
            p = Path(f"{self.path}{suffix}")
            if p.exists():
                p.unlink()
        logger.info("Deleted index %s", self.path)

    # ── read helpers ──────────────────────────────────────────────────────

    def indexed_dates(self) -> list[str]:
        """Dates recorded as fully indexed, newest first."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT date FROM indexed_dates ORDER BY date DESC"
            ).fetchall()
        return [r[0] for r in rows]

    def date_info(self, date: str) -> dict | None:
        with self.connection() as conn:
            rows = query_to_dicts(conn, "SELECT * FROM indexed_dates WHERE date = ?", (date,))
        return rows[0] if rows else None

    def row_count(self, table: str, date: str) -> int:
        if table not in CONTENT_TABLES:
            raise ValueError(f"unknown index table: {table}")
        with self.connection() as conn:
            return get_table_count(conn, table, "date = ?", (date,))

    def load_rows(self, date: str, table: str) -> list[dict]:
        """All stored rows of one table for *date*, in insert order."""
        if table not in CONTENT_TABLES:
            raise ValueError(f"unknown index table: {table}")
        with self.connection() as conn:
            rows = query_to_dicts(
                conn, f"SELECT * FROM {table} WHERE date = ? ORDER BY id", (date,)
            )
        for row in rows:
            for flag in FLAG_COLUMNS:
                if flag in row:
                    row[flag] = bool(row[flag])
        return rows
