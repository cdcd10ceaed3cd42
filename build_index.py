"""
Export Index Builder

Reads every YYYYMMDD date directory under the data roots, reconciles each
date's SQLite and XLSX exports, and writes the result into the SQLite
search index used by the API.

By default only dates missing from the index are processed (the same lazy
pass the API runs before search/totals).  Use --rebuild to drop the index
and re-read everything, or --date to re-index specific dates.

Usage:
    python build_index.py                                   # Index new dates
    python build_index.py --data-dir /var/data --data-dir ./data_input
    python build_index.py --rebuild                         # Full rebuild
    python build_index.py --date 20260115 --date 20260116   # Re-index dates
    python build_index.py --report index_report.json        # Save run report
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from ingest.report import IndexRunReport
from store.service import DatasetService
from utils.common import elapsed
from utils.config import AppConfig


def build_index(data_dirs: list[Path], index_path: Path | None = None,
                rebuild: bool = False, dates: list[str] | None = None) -> IndexRunReport:
    """Run one indexing pass and print progress to the terminal."""
    service = DatasetService(data_dirs, index_path=index_path)
    roots = service.locator.existing_roots()
    if not roots:
        raise FileNotFoundError(
            "None of the data roots exist: " + ", ".join(str(p) for p in data_dirs)
        )
    print(f"Data roots: {', '.join(str(r) for r in roots)}")
    print(f"Index: {service.store.path}")

    if rebuild:
        print("Rebuilding index from scratch...")
        return service.reindex_all()
    if not dates:
        return service.ensure_indexed()

    start = time.monotonic()
    report = IndexRunReport()
    for i, date in enumerate(dates, 1):
        print(f"  [{i}/{len(dates)}] {date}...", end=" ", flush=True)
        try:
            rows = service.index_date(date, report)
        except FileNotFoundError as e:
            print("missing")
            report.add_skip("missing_dir", str(e), date)
            continue
        except Exception as e:
            print(f"ERROR: {e}")
            report.add_error(f"{date}: {e}", item=date)
            continue
        report.add_indexed(date, rows)
        print(f"{rows:,} rows")
    report.elapsed_seconds = time.monotonic() - start
    return report


def main(argv: list[str] | None = None) -> int:
    """Parse command-line arguments and run the indexing pass."""
    cfg = AppConfig.from_env()
    parser = argparse.ArgumentParser(description="Build the export search index")
    parser.add_argument("--data-dir", type=Path, action="append", dest="data_dirs",
                        metavar="DIR",
                        help="Data root, repeatable, highest priority first "
                             "(default: APP_DATA_DIRS)")
    parser.add_argument("--index", type=Path, default=cfg.index_path,
                        help="Index path (default: APP_INDEX_PATH or <primary root>/_index.sqlite)")
    parser.add_argument("--rebuild", action="store_true",
                        help="Delete the index and re-read every date")
    parser.add_argument("--date", action="append", dest="dates", metavar="YYYYMMDD",
                        help="Re-index only this date (repeatable)")
    parser.add_argument("--report", type=Path, metavar="PATH",
                        help="Write the run report as JSON to PATH")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    start = time.time()
    try:
        report = build_index(args.data_dirs or cfg.data_dirs, args.index,
                             rebuild=args.rebuild, dates=args.dates)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"\n{'='*60}")
    print(f"  {report.console_summary()}")
    print(f"  Finished in {elapsed(start)}")
    print(f"{'='*60}")
    if args.report:
        args.report.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        print(f"Report written to {args.report}")
    return 0 if report.status == "completed" else 2


if __name__ == "__main__":
    sys.exit(main())
