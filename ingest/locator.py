"""
Source Locator — finds ``YYYYMMDD`` date directories under the data roots.

Roots are given in priority order.  Listing unions every existing root;
a single-date lookup returns the directory from the first root that has it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from utils.patterns import DATE_DIR

logger = logging.getLogger(__name__)

_SWEDISH_MONTHS = (
    "januari", "februari", "mars", "april", "maj", "juni",
    "juli", "augusti", "september", "oktober", "november", "december",
)


def is_date_name(name: str) -> bool:
    """True for eight-digit names that are also real calendar dates."""
    if not DATE_DIR.match(name):
        return False
    try:
        datetime.strptime(name, "%Y%m%d")
    except ValueError:
        return False
    return True


def display_label(date: str) -> str:
    """Render ``20260115`` as ``15 januari 2026``; unparsable input is returned as-is."""
    try:
        d = datetime.strptime(date, "%Y%m%d")
    except ValueError:
        return date
    return f"{d.day} {_SWEDISH_MONTHS[d.month - 1]} {d.year}"


class SourceLocator:
    """Enumerates date directories across an ordered list of roots."""

    def __init__(self, roots: Iterable[Path | str]) -> None:
        self.roots = [Path(r) for r in roots]
        if not self.roots:
            raise ValueError("SourceLocator needs at least one data root")

    def existing_roots(self) -> list[Path]:
        return [r for r in self.roots if r.is_dir()]

    def primary_root(self) -> Path:
        """First root that exists, else the first configured one."""
        existing = self.existing_roots()
        return existing[0] if existing else self.roots[0]

    def date_dirs(self) -> dict[str, Path]:
        """Map each date to its directory in the highest-priority root."""
        found: dict[str, Path] = {}
        for root in self.existing_roots():
            try:
                entries = list(root.iterdir())
            except OSError as exc:
                logger.warning("Cannot list data root %s: %s", root, exc)
                continue
            for entry in entries:
                if entry.is_dir() and is_date_name(entry.name):
                    found.setdefault(entry.name, entry)
        return found

    def list_dates(self) -> list[str]:
        """All dates on disk, newest first."""
        return sorted(self.date_dirs(), reverse=True)

    def find_date_dir(self, date: str) -> Path | None:
        if not is_date_name(date):
            return None
        for root in self.existing_roots():
            candidate = root / date
            if candidate.is_dir():
                return candidate
        return None
