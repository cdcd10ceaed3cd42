"""
Query Engine — search and whole-dataset totals over the index.

Search vocabulary:
    query        case-insensitive substring of the precomputed search_text
    segment      exact match
    region       exact match (the "Län" column)
    has_mail, has_audit, has_preview, worthy_site, has_email, has_domain
                 capability filters; only an explicit "on" value filters

Companies come back newest date first.  Inside one date rows keep their
insert order, which is not a defined sort.  A company seen in several dates
is returned once, from its most recent date.  Capability flags are
recomputed from that date's indexed mails, audits and evaluations rather
than trusted from the stored columns.

Totals use distinct natural keys so a company present in five dates counts
once; flag totals are unions across dates, not sums.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Mapping

from ingest.entities import CapabilityFlags
from ingest.merge import Linkage, build_linkage, derive_flags
from utils.config import KnownValues
from utils.database import query_to_dicts
from utils.strings import YES_TOKENS, clean_str, is_truthy

# Accepted spellings per filter, snake_case first then the dashboard's camelCase
_PARAM_NAMES = {
    "query": ("query", "q"),
    "segment": ("segment",),
    "region": ("region", "lan"),
    "has_mail": ("has_mail", "hasMail"),
    "has_audit": ("has_audit", "hasAudit"),
    "has_preview": ("has_preview", "hasPreview"),
    "worthy_site": ("worthy_site", "worthy", "worthySite"),
    "has_email": ("has_email", "hasEmail"),
    "has_domain": ("has_domain", "hasDomain"),
}

_HIDDEN_COLUMNS = ("id", "search_text")

_FLAG_TOTALS = {
    "has_mail": "companies_with_mail",
    "has_audit": "companies_with_audit",
    "has_preview": "companies_with_preview",
    "worthy_site": "companies_worthy_site",
    "has_email": "companies_with_email",
    "has_domain": "companies_with_domain",
}


def parse_flag(value: Any) -> bool:
    """Lenient boolean parsing: yes-like tokens are True, anything else is "no filter"."""
    if isinstance(value, bool):
        return value
    return is_truthy(value, YES_TOKENS)


@dataclass
class SearchFilters:
    query: str = ""
    segment: str = ""
    region: str = ""
    has_mail: bool = False
    has_audit: bool = False
    has_preview: bool = False
    worthy_site: bool = False
    has_email: bool = False
    has_domain: bool = False

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "SearchFilters":
        """Build filters from loosely typed request parameters."""
        values: dict[str, Any] = {}
        for field, names in _PARAM_NAMES.items():
            raw = next((params[n] for n in names if params.get(n) is not None), None)
            if field in CapabilityFlags.NAMES:
                values[field] = parse_flag(raw)
            else:
                values[field] = clean_str(raw) or ""
        return cls(**values)

    @property
    def needle(self) -> str:
        return self.query.strip().lower()

    def active_flags(self) -> list[str]:
        return [n for n in CapabilityFlags.NAMES if getattr(self, n)]

    def matches_flags(self, flags: CapabilityFlags) -> bool:
        return all(getattr(flags, n) for n in self.active_flags())


# ── Search ────────────────────────────────────────────────────────────────────

def date_linkage(conn: sqlite3.Connection, date: str) -> Linkage:
    """Rebuild one date's linkage sets from its indexed rows."""
    mails = query_to_dicts(
        conn, "SELECT folder_id, email, preview_url FROM mails WHERE date = ?", (date,))
    audits = query_to_dicts(
        conn, "SELECT folder_id FROM audits WHERE date = ?", (date,))
    evaluations = query_to_dicts(
        conn, "SELECT folder_id, verdict, preview_url FROM evaluations WHERE date = ?", (date,))
    return build_linkage(mails, audits, evaluations)


def _public(row: dict) -> dict:
    return {k: v for k, v in row.items() if k not in _HIDDEN_COLUMNS}


def search_companies(conn: sqlite3.Connection, filters: SearchFilters,
                     limit: int) -> tuple[list[dict], int]:
    """Return ``(companies[:limit], total)``."""
    conditions: list[str] = []
    params: list[Any] = []
    if filters.needle:
        conditions.append("instr(search_text, ?) > 0")
        params.append(filters.needle)
    if filters.segment:
        conditions.append("segment = ?")
        params.append(filters.segment)
    if filters.region:
        conditions.append("region = ?")
        params.append(filters.region)
    sql = "SELECT * FROM companies"
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY date DESC, id"

    links: dict[str, Linkage] = {}
    seen: set[str] = set()
    matched: list[dict] = []
    for row in conn.execute(sql, params).fetchall():
        row = dict(row)
        key = row["company_key"]
        if key in seen:
            continue
        date = row["date"]
        if date not in links:
            links[date] = date_linkage(conn, date)
        flags = derive_flags(row, links[date])
        if not filters.matches_flags(flags):
            continue
        seen.add(key)
        row.update(flags.to_dict())
        matched.append(_public(row))
    return matched[:limit], len(matched)


def search_people(conn: sqlite3.Connection, filters: SearchFilters,
                  limit: int) -> tuple[list[dict], int]:
    """Free-text person search; an empty query returns nothing."""
    if not filters.needle:
        return [], 0
    seen: set[tuple[str, str]] = set()
    matched: list[dict] = []
    rows = conn.execute(
        "SELECT * FROM people WHERE instr(search_text, ?) > 0 ORDER BY date DESC, id",
        (filters.needle,),
    )
    for row in rows:
        row = dict(row)
        if row["personal_id"]:
            key = (row["personal_id"], row["registration_id"])
            if key in seen:
                continue
            seen.add(key)
        matched.append(_public(row))
    return matched[:limit], len(matched)


def search(conn: sqlite3.Connection, filters: SearchFilters, limit: int) -> dict:
    companies, total_companies = search_companies(conn, filters, limit)
    people, total_people = search_people(conn, filters, limit)
    return {
        "companies": companies,
        "people": people,
        "total_companies": total_companies,
        "total_people": total_people,
    }


# ── Totals ────────────────────────────────────────────────────────────────────

def _scalar(conn: sqlite3.Connection, sql: str, params: tuple = ()) -> int:
    row = conn.execute(sql, params).fetchone()
    return (row[0] or 0) if row else 0


def _histogram(conn: sqlite3.Connection, column: str, fallback: str) -> dict[str, int]:
    rows = conn.execute(
        f"SELECT COALESCE(NULLIF({column}, ''), ?) AS k, COUNT(DISTINCT company_key) "
        f"FROM companies GROUP BY k ORDER BY k",
        (fallback,),
    ).fetchall()
    return {k: n for k, n in rows}


def totals(conn: sqlite3.Connection) -> dict:
    """Whole-dataset aggregate counts with distinct-key semantics."""
    sep = "char(31)"
    out: dict[str, Any] = {
        "total_dates": _scalar(conn, "SELECT COUNT(*) FROM indexed_dates"),
        "total_companies": _scalar(conn, "SELECT COUNT(DISTINCT company_key) FROM companies"),
        "total_people": (
            _scalar(conn, f"SELECT COUNT(DISTINCT personal_id || {sep} || registration_id) "
                          "FROM people WHERE personal_id <> ''")
            + _scalar(conn, "SELECT COUNT(*) FROM people WHERE personal_id = ''")
        ),
        "total_mails": _scalar(
            conn, f"SELECT COUNT(DISTINCT folder_id || {sep} || email || {sep} || subject) FROM mails"),
        "total_audits": _scalar(
            conn, f"SELECT COUNT(DISTINCT folder_id || {sep} || url || {sep} || audit_date) FROM audits"),
        "total_evaluations": _scalar(
            conn, "SELECT COUNT(DISTINCT COALESCE(NULLIF(folder_id, ''), registration_id)) "
                  "FROM evaluations"),
        "companies_with_phone": _scalar(
            conn, "SELECT COUNT(DISTINCT company_key) FROM companies "
                  "WHERE phones_found IS NOT NULL AND phones_found <> ''"),
    }
    for flag, name in _FLAG_TOTALS.items():
        # Stored per-date flags; DISTINCT over the key makes it a union
        out[name] = _scalar(
            conn, f"SELECT COUNT(DISTINCT company_key) FROM companies WHERE {flag} = 1")
    out["segments"] = _histogram(conn, "segment", KnownValues.UNKNOWN_LABEL)
    out["regions"] = _histogram(conn, "region", KnownValues.UNKNOWN_LABEL)
    out["domain_statuses"] = _histogram(conn, "domain_status", KnownValues.UNKNOWN_STATUS)
    return out
