"""
Ingest package -- reading and reconciling per-date export directories.

Re-exports key entry points so callers can do::

    from ingest import SourceLocator, read_date_dir, merge_date_data
"""

from ingest.locator import SourceLocator, display_label
from ingest.merge import calculate_stats, derive_flags, merge_date_data
from ingest.reader import read_date_dir

__all__ = [
    "SourceLocator",
    "display_label",
    "read_date_dir",
    "merge_date_data",
    "derive_flags",
    "calculate_stats",
]
