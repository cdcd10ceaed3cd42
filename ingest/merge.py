"""
Merge & Dedup — one date's reconciled lists into a consistent bundle.

Steps, in order:
    1. drop records whose identity fields are all empty
    2. resolve linkage: people and evaluations learn their company's
       folder id through registration id or org number
    3. deduplicate every kind by natural key, first seen wins
    4. copy evaluation outcome onto companies that lack it

Capability flags are never stored as primary truth.  ``derive_flags`` is
the one place they are computed; the index write path, the live search
path and the per-date stats all call it.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Callable, Hashable, Iterable, TypeVar

from ingest.entities import CapabilityFlags, Company, NormalizedData
from ingest.normalize import is_blank, role_kind
from utils.config import KnownValues
from utils.strings import WORTHY_TOKENS, is_truthy

T = TypeVar("T")


def dedupe(items: Iterable[T], key_fn: Callable[[T], Hashable | None]) -> list[T]:
    """Keep the first item per key.  A ``None`` key is never deduplicated."""
    seen: set = set()
    out: list[T] = []
    for item in items:
        k = key_fn(item)
        if k is None:
            out.append(item)
            continue
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
    return out


def _company_folder_maps(companies: list[Company]) -> tuple[dict[str, str], dict[str, str]]:
    by_reg: dict[str, str] = {}
    by_org: dict[str, str] = {}
    for c in companies:
        if not c.folder_id:
            continue
        if c.registration_id:
            by_reg.setdefault(c.registration_id, c.folder_id)
        if c.org_number:
            by_org.setdefault(c.org_number, c.folder_id)
    return by_reg, by_org


def merge_date_data(data: NormalizedData) -> NormalizedData:
    """Return a new deduplicated, linked bundle; *data* is not modified."""
    companies = [c for c in data.companies if not is_blank("companies", c)]
    by_reg, by_org = _company_folder_maps(companies)

    def resolve(entity):
        if entity.folder_id:
            return entity
        folder = by_reg.get(entity.registration_id) or by_org.get(
            getattr(entity, "org_number", ""), "")
        return replace(entity, folder_id=folder) if folder else entity

    people = [resolve(p) for p in data.people if not is_blank("people", p)]
    evaluations = [resolve(e) for e in data.evaluations if not is_blank("evaluations", e)]
    mails = [m for m in data.mails if not is_blank("mails", m)]
    audits = [a for a in data.audits if not is_blank("audits", a)]

    companies = dedupe(companies, lambda c: c.key)
    people = dedupe(people, lambda p: p.key)
    mails = dedupe(mails, lambda m: m.key)
    audits = dedupe(audits, lambda a: a.key)
    evaluations = dedupe(evaluations, lambda e: e.key)

    eval_by_folder = {e.folder_id: e for e in evaluations if e.folder_id}
    enriched = []
    for c in companies:
        ev = eval_by_folder.get(c.folder_id) if c.folder_id else None
        if ev is not None:
            c = replace(
                c,
                worth_site=c.worth_site or ev.verdict,
                confidence=c.confidence or ev.confidence,
                preview_url=c.preview_url or ev.preview_url,
            )
        enriched.append(c)

    return NormalizedData(
        companies=enriched,
        people=people,
        mails=mails,
        audits=audits,
        evaluations=evaluations,
        summary=data.summary,
    )


# ── Capability flags ──────────────────────────────────────────────────────────

@dataclass
class Linkage:
    """Folder ids touched by mails, audits and evaluations of one date."""

    mail: set[str] = field(default_factory=set)
    audit: set[str] = field(default_factory=set)
    preview: set[str] = field(default_factory=set)
    worthy: set[str] = field(default_factory=set)
    email: set[str] = field(default_factory=set)


def build_linkage(mails: Iterable, audits: Iterable, evaluations: Iterable) -> Linkage:
    """Index the linked entity lists by folder id.

    Accepts entity dataclasses or index rows alike; only attribute/ key
    names shared by both are used.
    """
    link = Linkage()
    for m in mails:
        folder = _get(m, "folder_id")
        if not folder:
            continue
        link.mail.add(folder)
        if _get(m, "preview_url"):
            link.preview.add(folder)
        if _get(m, "email"):
            link.email.add(folder)
    for a in audits:
        folder = _get(a, "folder_id")
        if folder:
            link.audit.add(folder)
    for e in evaluations:
        folder = _get(e, "folder_id")
        if not folder:
            continue
        if _get(e, "preview_url"):
            link.preview.add(folder)
        if is_truthy(_get(e, "verdict"), WORTHY_TOKENS):
            link.worthy.add(folder)
    return link


def _get(obj, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def derive_flags(company, link: Linkage) -> CapabilityFlags:
    """Compute the six capability flags for one company (entity or row dict)."""
    folder = _get(company, "folder_id") or ""

    def linked(ids: set[str]) -> bool:
        return bool(folder) and folder in ids

    return CapabilityFlags(
        has_mail=linked(link.mail),
        has_audit=linked(link.audit),
        has_preview=bool(_get(company, "preview_url")) or linked(link.preview),
        worthy_site=is_truthy(_get(company, "worth_site"), WORTHY_TOKENS) or linked(link.worthy),
        has_email=bool(_get(company, "email") or _get(company, "emails_found")) or linked(link.email),
        has_domain=bool(_get(company, "domain_verified") or _get(company, "domain_guess")),
    )


def derive_all_flags(data: NormalizedData) -> list[CapabilityFlags]:
    """Flags for every company of *data*, in company order."""
    link = build_linkage(data.mails, data.audits, data.evaluations)
    return [derive_flags(c, link) for c in data.companies]


# ── Per-date statistics ───────────────────────────────────────────────────────

def calculate_stats(data: NormalizedData) -> dict:
    """Summary numbers for one date, computed from the merged bundle."""
    flags = derive_all_flags(data)
    unknown = KnownValues.UNKNOWN_LABEL
    segments = Counter(c.segment or unknown for c in data.companies)
    regions = Counter(c.region or unknown for c in data.companies)
    statuses = Counter(c.domain_status or KnownValues.UNKNOWN_STATUS for c in data.companies)
    roles = Counter(role_kind(p.role) for p in data.people)

    return {
        "total_companies": len(data.companies),
        "total_people": len(data.people),
        "total_mails": len(data.mails),
        "total_audits": len(data.audits),
        "total_evaluations": len(data.evaluations),
        "companies_with_domain": sum(f.has_domain for f in flags),
        "companies_with_email": sum(f.has_email for f in flags),
        "companies_with_phone": sum(1 for c in data.companies if c.phones_found),
        "companies_with_mail": sum(f.has_mail for f in flags),
        "companies_with_audit": sum(f.has_audit for f in flags),
        "companies_with_preview": sum(f.has_preview for f in flags),
        "companies_worthy_site": sum(f.worthy_site for f in flags),
        "unique_people": len({p.personal_id for p in data.people if p.personal_id}),
        "board_members": roles["board_member"],
        "deputies": roles["deputy"],
        "unique_cities": len({p.city for p in data.people if p.city}),
        "segments": dict(segments),
        "regions": dict(regions),
        "domain_statuses": dict(statuses),
    }
