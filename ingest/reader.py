"""
Source Reader — reads every export file of one date directory.

A date directory (``<root>/20260115/``) holds any mix of:

    *.db / *.sqlite        SQLite exports with companies/people/... tables
    *final*.xlsx           fully enriched report (wins for companies/people)
    *kungorelser*.xlsx     raw registry export, company data on sheet one
    *mail_ready*.xlsx      generated mails
    other *.xlsx           anything else with known sheet names

Database files are read first, then workbooks, each group in sorted order.
Every file is parsed completely before it contributes anything, so a
corrupt file is skipped as a whole (logged and recorded in
``ReadResult.errors``) and never leaves half its rows behind.

Reconciliation per kind:
    companies, people   marker file wins outright (KnownValues.PRECEDENCE_MARKERS);
                        otherwise first file with non-empty data
    mails, audits       union of every file (deduplicated later by merge)
    evaluations,
    summary             first non-empty

Provenance is the label of the last file that set the winning companies or
people list (``embedded-db``, ``spreadsheet-final``, ``spreadsheet-other``),
or ``unknown`` when no file did.  A database that supplies people followed
by a final workbook that supplies companies is reported as
``spreadsheet-final``.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import openpyxl

from ingest.entities import NormalizedData
from ingest.normalize import normalize_rows, normalize_summary
from utils.config import KnownValues
from utils.database import open_connection, list_tables
from utils.patterns import DATABASE_FILE, LOCK_FILE, SPREADSHEET_FILE
from utils.strings import clean_str

logger = logging.getLogger(__name__)

_KINDS = KnownValues.ENTITY_KINDS
_WINNER_KINDS = ("companies", "people")


@dataclasses.dataclass
class FailedFileEntry:
    """Record of a source file that could not be read."""
    file_name: str
    error_type: str
    error_detail: str
    timestamp: str = dataclasses.field(
        default_factory=lambda: datetime.now().isoformat()
    )

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclasses.dataclass
class ReadResult:
    data: NormalizedData
    provenance: str = "unknown"
    files: list[str] = dataclasses.field(default_factory=list)
    errors: list[FailedFileEntry] = dataclasses.field(default_factory=list)


# ── File enumeration ──────────────────────────────────────────────────────────

def list_source_files(date_dir: Path) -> tuple[list[Path], list[Path]]:
    """Return ``(database_files, workbook_files)`` in iteration order."""
    databases: list[Path] = []
    workbooks: list[Path] = []
    for path in sorted(Path(date_dir).iterdir(), key=lambda p: p.name):
        if not path.is_file() or LOCK_FILE.match(path.name):
            continue
        if DATABASE_FILE.search(path.name):
            databases.append(path)
        elif SPREADSHEET_FILE.search(path.name):
            workbooks.append(path)
    return databases, workbooks


def provenance_label(path: Path) -> str:
    """Map a source file to its provenance label."""
    name = path.name.lower()
    if DATABASE_FILE.search(name):
        return "embedded-db"
    if KnownValues.FINAL_MARKER in name:
        return "spreadsheet-final"
    return "spreadsheet-other"


def marker_rank(kind: str, file_name: str) -> int | None:
    """Index of the first precedence marker in *file_name*, or None."""
    name = file_name.lower()
    for rank, marker in enumerate(KnownValues.PRECEDENCE_MARKERS.get(kind, ())):
        if marker in name:
            return rank
    return None


# ── Format readers ────────────────────────────────────────────────────────────

def _sheet_rows(ws) -> list[dict[str, Any]]:
    """Turn a worksheet into dicts keyed by its first non-empty row."""
    headers: list[str | None] | None = None
    rows: list[dict[str, Any]] = []
    for values in ws.iter_rows(values_only=True):
        if not any(v is not None and str(v).strip() for v in values):
            continue
        if headers is None:
            headers = [clean_str(v) for v in values]
            continue
        rows.append({
            h: v for h, v in zip(headers, values) if h is not None
        })
    return rows


def read_workbook(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Extract entity rows from one workbook.

    Returns a dict with a key per entity kind plus ``"summary"``.  Sheets
    are located by the ordered name lists in ``KnownValues.SHEET_NAMES``;
    the first sheet with data wins.  Raw registry exports without a named
    company sheet fall back to their first sheet.
    """
    wb = openpyxl.load_workbook(str(path), read_only=True, data_only=True)
    try:
        cache: dict[str, list[dict[str, Any]]] = {}

        def rows_of(sheet_name: str) -> list[dict[str, Any]]:
            if sheet_name not in cache:
                cache[sheet_name] = _sheet_rows(wb[sheet_name])
            return cache[sheet_name]

        found: dict[str, list[dict[str, Any]]] = {}
        for kind, names in KnownValues.SHEET_NAMES.items():
            found[kind] = []
            for name in names:
                if name in wb.sheetnames and rows_of(name):
                    found[kind] = rows_of(name)
                    break

        if (not found["companies"] and wb.sheetnames
                and KnownValues.RAW_EXPORT_MARKER in path.name.lower()):
            found["companies"] = rows_of(wb.sheetnames[0])
        return found
    finally:
        wb.close()


def read_database(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Extract entity rows from one SQLite export (read-only)."""
    conn = open_connection(path, read_only=True)
    try:
        tables = set(list_tables(conn))
        found: dict[str, list[dict[str, Any]]] = {}
        for kind, names in KnownValues.TABLE_NAMES.items():
            found[kind] = []
            for table in names:
                if table in tables:
                    found[kind] = [dict(r) for r in conn.execute(f'SELECT * FROM "{table}"')]
                    break
        return found
    finally:
        conn.close()


# ── Reconciliation ────────────────────────────────────────────────────────────

class _Reconciler:
    """Accumulates per-file contributions under the precedence policy."""

    def __init__(self) -> None:
        self.data = NormalizedData()
        self._rank: dict[str, int | None] = {k: None for k in _WINNER_KINDS}
        self._last_label = "unknown"

    def _offer_winner(self, kind: str, items: list, path: Path) -> None:
        rank = marker_rank(kind, path.name)
        current = getattr(self.data, kind)
        held = self._rank[kind]
        if rank is not None:
            # A later file with an equal or stronger marker overwrites again
            if held is None or rank <= held:
                setattr(self.data, kind, items)
                self._rank[kind] = rank
                self._last_label = provenance_label(path)
        elif held is None and not current:
            setattr(self.data, kind, items)
            self._last_label = provenance_label(path)

    def add(self, path: Path, raw: dict[str, list[dict[str, Any]]]) -> None:
        normalized = {kind: normalize_rows(kind, raw.get(kind) or []) for kind in _KINDS}
        for kind in _WINNER_KINDS:
            if normalized[kind]:
                self._offer_winner(kind, normalized[kind], path)
        self.data.mails.extend(normalized["mails"])
        self.data.audits.extend(normalized["audits"])
        if normalized["evaluations"] and not self.data.evaluations:
            self.data.evaluations = normalized["evaluations"]
        if self.data.summary is None and raw.get("summary"):
            self.data.summary = normalize_summary(raw["summary"])

    def provenance(self) -> str:
        return self._last_label


def read_date_dir(date_dir: Path) -> ReadResult:
    """Read and reconcile every source file in *date_dir*.

    Raises:
        OSError: If the directory itself cannot be listed.  Per-file
            failures are caught, logged and reported in ``errors``.
    """
    date_dir = Path(date_dir)
    databases, workbooks = list_source_files(date_dir)
    recon = _Reconciler()
    result = ReadResult(data=recon.data)

    for path, reader in [(p, read_database) for p in databases] + \
                        [(p, read_workbook) for p in workbooks]:
        try:
            raw = reader(path)
        except Exception as exc:
            logger.warning("Skipping unreadable source %s/%s: %s",
                           date_dir.name, path.name, exc)
            result.errors.append(FailedFileEntry(
                file_name=path.name,
                error_type=type(exc).__name__,
                error_detail=str(exc),
            ))
            continue
        recon.add(path, raw)
        result.files.append(path.name)

    result.data = recon.data
    result.provenance = recon.provenance()
    logger.debug("Read %s: files=%d provenance=%s counts=%s",
                 date_dir.name, len(result.files), result.provenance,
                 result.data.counts())
    return result
