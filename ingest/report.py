"""
Index run reports — structured skip/error accounting for indexing passes.

``IndexRunReport`` captures what one lazy-indexing or CLI pass did: which
dates it indexed, which it skipped and why, and which failed.  Failed
dates stay un-indexed and are retried on the next pass.

Skip categories (for SkipRecord.category):
    already_indexed  — date already recorded in indexed_dates
    missing_dir      — requested date has no directory on disk
    error_skip       — indexing raised; see ``errors``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SkipRecord:
    """One thing that was skipped, with a machine-readable category."""

    category: str
    detail: str
    item: str = ""         # date, file name, ...

    def to_dict(self) -> dict[str, str]:
        d: dict[str, str] = {"category": self.category, "detail": self.detail}
        if self.item:
            d["item"] = self.item
        return d


@dataclass
class IndexRunReport:
    """Summary of one indexing pass."""

    status: str = "completed"                  # completed | partial
    elapsed_seconds: float = 0.0
    indexed_dates: list[str] = field(default_factory=list)
    rows_written: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    source_errors: list[dict[str, str]] = field(default_factory=list)

    def add_indexed(self, date: str, rows: int) -> None:
        self.indexed_dates.append(date)
        self.rows_written += rows

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        self.skips.append(SkipRecord(category=category, detail=detail, item=item))

    def add_error(self, message: str, item: str = "") -> None:
        self.errors.append(message)
        self.status = "partial"
        if item:
            self.add_skip("error_skip", message, item)

    def skip_counts_by_category(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for s in self.skips:
            counts[s.category] = counts.get(s.category, 0) + 1
        return counts

    def console_summary(self) -> str:
        """One-line summary suitable for the terminal."""
        parts: list[str] = []
        if self.indexed_dates:
            parts.append(f"{len(self.indexed_dates):,} dates indexed ({self.rows_written:,} rows)")
        if self.skips:
            cats = self.skip_counts_by_category()
            skip_parts = [f"{v} {k.replace('_', ' ')}" for k, v in sorted(cats.items())]
            parts.append(f"{len(self.skips):,} skipped ({', '.join(skip_parts)})")
        if self.errors:
            parts.append(f"{len(self.errors):,} errors")
        if self.source_errors:
            parts.append(f"{len(self.source_errors):,} unreadable source files")
        return " | ".join(parts) if parts else "no activity"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "indexed_dates": self.indexed_dates,
            "rows_written": self.rows_written,
        }
        if self.skips:
            d["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            d["errors"] = self.errors
        if self.source_errors:
            d["source_errors"] = self.source_errors
        return d
