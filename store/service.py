"""
Dataset service — the single entry point the API and CLI talk to.

Wraps a SourceLocator (where the date directories live) and an IndexStore
(the SQLite cache of them).  Aggregate reads index lazily: every on-disk
date missing from ``indexed_dates`` is read, merged and written before the
query runs, and indexed dates whose directory has disappeared are dropped.
A date that fails to index is logged and left out of the report's
``indexed_dates``; it is retried on the next call.
"""

from __future__ import annotations

import logging
import shutil
import time
import zipfile
from io import BytesIO
from pathlib import Path

from ingest.locator import SourceLocator, display_label, is_date_name
from ingest.merge import calculate_stats, merge_date_data
from ingest.reader import ReadResult, read_date_dir
from ingest.report import IndexRunReport
from store import query
from store.index_db import IndexStore
from utils.cache import TTLCache
from utils.config import AppConfig

logger = logging.getLogger(__name__)

_TOTALS_KEY = "totals"


class BundleError(ValueError):
    """Raised for an upload bundle that cannot be accepted."""


def _safe_members(archive: zipfile.ZipFile, target: Path) -> list[zipfile.ZipInfo]:
    """Return the archive members, refusing any that would land outside *target*."""
    root = target.resolve()
    members = []
    for info in archive.infolist():
        dest = (root / info.filename).resolve()
        if dest != root and root not in dest.parents:
            raise BundleError(f"archive member escapes target directory: {info.filename}")
        members.append(info)
    return members


class DatasetService:
    """Lazy-indexing facade over the export directories and the index."""

    def __init__(self, roots, index_path: Path | str | None = None,
                 totals_ttl: float = 60.0) -> None:
        self.locator = roots if isinstance(roots, SourceLocator) else SourceLocator(roots)
        if index_path is None:
            index_path = self.locator.primary_root() / "_index.sqlite"
        self.store = IndexStore(index_path)
        self._totals_cache = TTLCache(maxsize=4, ttl_seconds=totals_ttl)

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "DatasetService":
        locator = SourceLocator(cfg.data_dirs)
        return cls(
            locator,
            index_path=cfg.resolve_index_path(locator.primary_root()),
            totals_ttl=cfg.totals_cache_ttl,
        )

    # ── Per-date reads (straight from the source files) ──────────────────

    def list_dates(self) -> list[dict]:
        return [{"date": d, "display_label": display_label(d)}
                for d in self.locator.list_dates()]

    def read_date(self, date: str) -> ReadResult | None:
        """Read and merge one date directory; None when it does not exist."""
        date_dir = self.locator.find_date_dir(date)
        if date_dir is None:
            return None
        result = read_date_dir(date_dir)
        result.data = merge_date_data(result.data)
        return result

    def get_date_data(self, date: str) -> dict | None:
        result = self.read_date(date)
        if result is None:
            return None
        payload = result.data.to_dict()
        payload.update({
            "date": date,
            "display_label": display_label(date),
            "stats": calculate_stats(result.data),
            "provenance": result.provenance,
            "source_errors": [e.to_dict() for e in result.errors],
        })
        return payload

    # ── Indexing ─────────────────────────────────────────────────────────

    def index_date(self, date: str, report: IndexRunReport | None = None) -> int:
        """Read, merge and (re)write one date.

        Files that could not be read are added to *report*'s
        ``source_errors`` when a report is given.

        Raises:
            FileNotFoundError: If no root has a directory for *date*.
        """
        result = self.read_date(date)
        if result is None:
            raise FileNotFoundError(f"no data directory for {date}")
        written = self.store.index_date(
            date, result.data,
            provenance=result.provenance,
            source_errors=len(result.errors),
        )
        self._totals_cache.invalidate()
        if report is not None:
            report.source_errors.extend(
                {"date": date, **e.to_dict()} for e in result.errors
            )
        return written

    def _index_dates(self, dates: list[str], report: IndexRunReport) -> None:
        for date in dates:
            try:
                report.add_indexed(date, self.index_date(date, report))
            except Exception as exc:
                logger.error("Failed to index %s: %s", date, exc)
                report.add_error(f"{date}: {exc}", item=date)

    def ensure_indexed(self) -> IndexRunReport:
        """Index every on-disk date that is not yet in the index."""
        start = time.monotonic()
        report = IndexRunReport()
        on_disk = self.locator.list_dates()
        indexed = set(self.store.indexed_dates())

        for stale in sorted(indexed - set(on_disk)):
            logger.info("Dropping %s from index: directory is gone", stale)
            self.store.remove_date(stale)
            self._totals_cache.invalidate()

        pending = [d for d in on_disk if d not in indexed]
        for date in on_disk:
            if date in indexed:
                report.add_skip("already_indexed", "present in indexed_dates", date)
        self._index_dates(pending, report)
        report.elapsed_seconds = time.monotonic() - start
        if pending:
            logger.info("Lazy index pass: %s", report.console_summary())
        return report

    def reindex_all(self) -> IndexRunReport:
        """Drop the index file and rebuild it from every date on disk."""
        start = time.monotonic()
        report = IndexRunReport()
        self.store.clear()
        self._totals_cache.invalidate()
        self._index_dates(self.locator.list_dates(), report)
        report.elapsed_seconds = time.monotonic() - start
        logger.info("Full reindex: %s", report.console_summary())
        return report

    # ── Aggregate reads (through the index) ──────────────────────────────

    def get_totals(self) -> dict:
        self.ensure_indexed()
        cached = self._totals_cache.get(_TOTALS_KEY)
        if cached is not None:
            return cached
        generation = self._totals_cache.generation
        with self.store.connection() as conn:
            result = query.totals(conn)
        self._totals_cache.set(_TOTALS_KEY, result, generation=generation)
        return result

    def search(self, filters: query.SearchFilters, limit: int) -> dict:
        self.ensure_indexed()
        with self.store.connection() as conn:
            return query.search(conn, filters, limit)

    # ── Uploads and destructive admin ────────────────────────────────────

    def ingest_bundle(self, date: str, payload: bytes) -> dict:
        """Store a zipped export for *date* in the primary root and index it.

        Raises:
            BundleError: Bad date, empty payload, corrupt or unsafe archive.
        """
        if not is_date_name(date):
            raise BundleError(f"invalid date {date!r}, expected YYYYMMDD")
        if not payload:
            raise BundleError("empty bundle")
        target = self.locator.primary_root() / date
        try:
            archive = zipfile.ZipFile(BytesIO(payload))
        except zipfile.BadZipFile as exc:
            raise BundleError(f"not a zip archive: {exc}") from exc

        with archive:
            members = _safe_members(archive, target)
            target.mkdir(parents=True, exist_ok=True)
            (target / f"{date}.zip").write_bytes(payload)
            archive.extractall(target, members=members)
        files = [m.filename for m in members if not m.is_dir()]
        logger.info("Extracted %d files for %s into %s", len(files), date, target)

        indexed = False
        try:
            self.index_date(date)
            indexed = True
        except Exception as exc:
            logger.error("Bundle for %s stored but indexing failed: %s", date, exc)
        return {
            "date": date,
            "path": str(target),
            "files_extracted": len(files),
            "indexed": indexed,
        }

    def clear_data(self) -> dict:
        """Delete every date directory in every root, then the index."""
        deleted: list[str] = []
        errors: list[str] = []
        for root in self.locator.existing_roots():
            for entry in sorted(root.iterdir()):
                if not (entry.is_dir() and is_date_name(entry.name)):
                    continue
                try:
                    shutil.rmtree(entry)
                    deleted.append(entry.name)
                except OSError as exc:
                    logger.error("Failed to delete %s: %s", entry, exc)
                    errors.append(f"{entry.name}: {exc}")
        self.store.clear()
        self._totals_cache.invalidate()
        logger.info("Cleared %d date folders", len(deleted))
        return {"deleted_folders": len(deleted), "folders": deleted, "errors": errors}
