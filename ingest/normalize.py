"""
Entity Normalizer — raw source rows to canonical entities.

Source rows arrive as plain ``dict[str, Any]`` from openpyxl sheets or
sqlite3 tables.  Header spellings differ between exports: the human
Swedish labels of the Excel reports ("Org.nr", "Ska få sajt"), the
snake_case columns of the SQLite exports ("orgnr", "ska_fa_sajt") and, for
newer files, the English canonical names.  Each canonical field has an
ordered synonym tuple; the first synonym present in the row wins.

Coercion rules:
    - numbers accept ints, floats and locale strings ("0,85", "1 234,5");
      anything unparsable becomes None
    - strings are trimmed, whitespace-only becomes None; key fields
      default to "" instead
    - yes/no columns keep their raw token ("Ja", "nej", "1") and are
      interpreted later with utils.strings.is_truthy
    - audit scores outside [0, 10] and domain confidence outside [0, 1]
      become None

Nothing in this module raises on bad input.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping

from ingest.entities import (
    Audit,
    Company,
    Evaluation,
    Mail,
    Person,
    Summary,
)
from utils.patterns import BOARD_MEMBER_ROLE, DEPUTY_ROLE
from utils.strings import clean_str, normalize_whitespace, parse_decimal

_FOLDER = ("Mapp", "mapp", "folder", "folder_id")
_REG_ID = ("Kungörelse-id", "kungorelse_id", "registration_id")
_ORGNR = ("Org.nr", "orgnr", "org_nr", "org_number")
_PREVIEW = ("Preview URL", "preview_url")

# ── Synonym tables ────────────────────────────────────────────────────────────

COMPANY_FIELDS = MappingProxyType({
    "folder_id": _FOLDER,
    "registration_id": _REG_ID,
    "org_number": _ORGNR,
    "name": ("Företagsnamn", "foretagsnamn", "name"),
    "registration_date": ("Registreringsdatum", "registreringsdatum", "registration_date"),
    "publication_date": ("Publiceringsdatum", "publiceringsdatum", "publication_date"),
    "region": ("Län", "lan", "region"),
    "seat": ("Säte", "sate", "seat"),
    "address": ("Postadress", "postadress", "address"),
    "email": ("E-post", "epost", "email"),
    "company_type": ("Typ", "typ", "company_type"),
    "founded": ("Bildat", "bildat", "founded"),
    "business_description": ("Verksamhet", "verksamhet", "business_description"),
    "financial_year": ("Räkenskapsår", "rakenskapsar", "financial_year"),
    "share_capital": ("Aktiekapital", "aktiekapital", "share_capital"),
    "share_count": ("Antal aktier", "antal_aktier", "share_count"),
    "signing_authority": ("Firmateckning", "firmateckning", "signing_authority"),
    "board_members": ("Styrelseledamöter", "styrelseledamoter", "board_members"),
    "board_deputies": ("Styrelsesuppleanter", "styrelsesuppleanter", "board_deputies"),
    "board_other": ("Styrelse (övrigt)", "styrelse_ovrigt", "board_other"),
    "segment": ("Segment", "segment"),
    "source_url": ("Källa URL", "kalla_url", "source_url"),
    "domain_guess": ("domain_guess",),
    "domain_verified": ("domain_verified",),
    "domain_confidence": ("domain_confidence",),
    "domain_status": ("domain_status",),
    "emails_found": ("emails_found",),
    "phones_found": ("phones_found",),
    "people_count": ("people_count",),
    "research_done": ("research_done",),
    "worth_site": ("Ska få sajt", "ska_fa_sajt", "worth_site"),
    "confidence": ("Konfidens", "konfidens", "confidence"),
    "preview_url": _PREVIEW,
    "audit_link": ("Audit Link", "audit_link"),
})

PERSON_FIELDS = MappingProxyType({
    "registration_id": _REG_ID,
    "folder_id": _FOLDER,
    "company_name": ("Företagsnamn", "foretagsnamn", "company_name"),
    "org_number": _ORGNR,
    "personal_id": ("Personnummer", "personnummer", "personal_id"),
    "role": ("Roll", "roll", "titel", "role"),
    "last_name": ("Efternamn", "efternamn", "last_name"),
    "first_name": ("Förnamn", "fornamn", "first_name"),
    "middle_name": ("Mellannamn", "mellannamn", "middle_name"),
    "address": ("Adress", "adress", "address"),
    "postal_code": ("Postnummer", "postnummer", "postal_code"),
    "city": ("Ort", "ort", "city"),
})

MAIL_FIELDS = MappingProxyType({
    "folder_id": _FOLDER,
    "company_name": ("Företagsnamn", "Företag", "company", "company_name"),
    "email": ("E-post", "Email", "email"),
    "subject": ("Ämne", "subject"),
    "body": ("Mail-text", "mail_content", "body"),
    "cost_sek": ("Kostnad (SEK)", "cost_sek"),
    "domain_status": ("Status", "domain_status"),
    "preview_url": ("Preview URL", "site_preview_url", "preview_url"),
    "audit_note": ("audit_note",),
})

AUDIT_FIELDS = MappingProxyType({
    "folder_id": _FOLDER,
    "company_name": ("Företag", "Företagsnamn", "foretagsnamn", "company_name"),
    "url": ("Hemsida", "hemsida", "url"),
    "audit_date": ("Audit-datum", "audit_datum", "audit_date"),
    "industry": ("Bransch", "bransch", "industry"),
    "overall": ("Helhet", "helhet", "overall"),
    "design": ("Design", "design"),
    "content": ("Innehåll", "innehall", "content"),
    "usability": ("Användbarhet", "anvandbarhet", "usability"),
    "mobile": ("Mobil", "mobil", "mobile"),
    "seo": ("SEO", "seo"),
    "strengths": ("Styrkor", "styrkor", "strengths"),
    "weaknesses": ("Svagheter", "svagheter", "weaknesses"),
    "recommendations": ("Rekommendationer", "rekommendationer", "recommendations"),
})

EVALUATION_FIELDS = MappingProxyType({
    "registration_id": _REG_ID,
    "folder_id": _FOLDER,
    "company_name": ("Företagsnamn", "foretagsnamn", "company_name"),
    "verdict": ("Ska få sajt", "ska_fa_sajt", "verdict"),
    "confidence": ("Konfidens", "konfidens", "confidence"),
    "rationale": ("Motivering", "motivering", "rationale"),
    "preview_url": _PREVIEW,
})

# Fields that must never be None
_KEY_FIELDS = MappingProxyType({
    "companies": frozenset({"folder_id", "registration_id", "org_number", "name"}),
    "people": frozenset({"registration_id", "folder_id", "company_name", "org_number", "personal_id"}),
    "mails": frozenset({"folder_id", "company_name", "email", "subject"}),
    "audits": frozenset({"folder_id", "company_name", "url", "audit_date"}),
    "evaluations": frozenset({"registration_id", "folder_id", "company_name"}),
})

# A record is dropped when every one of these is empty
_IDENTITY_FIELDS = MappingProxyType({
    "companies": ("folder_id", "org_number"),
    "people": ("personal_id", "registration_id", "org_number"),
    "mails": ("folder_id", "email"),
    "audits": ("folder_id", "url"),
    "evaluations": ("folder_id", "registration_id"),
})

_NUMERIC = frozenset({"domain_confidence", "people_count", "cost_sek"})
_SCORES = frozenset({"overall", "design", "content", "usability", "mobile", "seo"})

_TABLES = MappingProxyType({
    "companies": (Company, COMPANY_FIELDS),
    "people": (Person, PERSON_FIELDS),
    "mails": (Mail, MAIL_FIELDS),
    "audits": (Audit, AUDIT_FIELDS),
    "evaluations": (Evaluation, EVALUATION_FIELDS),
})

# Summary sheet "Nyckel" labels (lowercased) -> Summary field, matched by substring
_SUMMARY_KEYS = (
    ("totalt antal företag", "total_companies"),
    ("med domän", "with_domain"),
    ("mail genererade", "mails_generated"),
    ("bedömda företag", "evaluated"),
    ("värda företag", "worthy"),
    ("preview-url", "with_preview"),
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _index_row(raw: Mapping[Any, Any]) -> dict[str, Any]:
    # Header cells often carry stray spaces or line breaks
    return {
        normalize_whitespace(str(k)): v
        for k, v in raw.items()
        if k is not None
    }


def _lookup(row: Mapping[str, Any], synonyms: Iterable[str]) -> Any:
    for name in synonyms:
        if name in row:
            value = row[name]
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            return value
    return None


def _bounded(value: Any, low: float, high: float) -> float | None:
    number = parse_decimal(value)
    if number is None or not (low <= number <= high):
        return None
    return number


def normalize_status(value: Any) -> str | None:
    """Lowercase a domain status and fold spaces/hyphens to underscores."""
    s = clean_str(value)
    if s is None:
        return None
    return "_".join(s.lower().replace("-", " ").split())


def _coerce(field: str, value: Any) -> Any:
    if field in _SCORES:
        return _bounded(value, 0.0, 10.0)
    if field == "domain_confidence":
        return _bounded(value, 0.0, 1.0)
    if field in _NUMERIC:
        return parse_decimal(value)
    if field == "domain_status":
        return normalize_status(value)
    return clean_str(value)


# ── Normalizers ───────────────────────────────────────────────────────────────

def normalize(kind: str, raw: Mapping[Any, Any]):
    """Map one raw row onto the canonical entity for *kind*.

    Args:
        kind: One of companies, people, mails, audits, evaluations.
        raw: Any mapping from header/column name to cell value.

    Returns:
        The entity dataclass instance.  Unknown keys are ignored; fields
        without a matching synonym stay None (or "" for key fields).

    Raises:
        KeyError: If *kind* is not an entity kind.  This is a programming
            error, not bad data.
    """
    cls, table = _TABLES[kind]
    keys = _KEY_FIELDS[kind]
    row = _index_row(raw or {})
    values: dict[str, Any] = {}
    for field, synonyms in table.items():
        value = _coerce(field, _lookup(row, synonyms))
        if value is None and field in keys:
            value = ""
        values[field] = value
    return cls(**values)


def normalize_company(raw: Mapping[Any, Any]) -> Company:
    return normalize("companies", raw)


def normalize_person(raw: Mapping[Any, Any]) -> Person:
    return normalize("people", raw)


def normalize_mail(raw: Mapping[Any, Any]) -> Mail:
    return normalize("mails", raw)


def normalize_audit(raw: Mapping[Any, Any]) -> Audit:
    return normalize("audits", raw)


def normalize_evaluation(raw: Mapping[Any, Any]) -> Evaluation:
    return normalize("evaluations", raw)


def normalize_rows(kind: str, rows: Iterable[Mapping[Any, Any]]) -> list:
    """Normalise every row of one sheet/table, dropping blank records."""
    out = []
    for raw in rows:
        entity = normalize(kind, raw)
        if not is_blank(kind, entity):
            out.append(entity)
    return out


def is_blank(kind: str, entity) -> bool:
    """True when every identity field of *entity* is empty."""
    return not any(getattr(entity, f) for f in _IDENTITY_FIELDS[kind])


def normalize_summary(rows: Iterable[Mapping[Any, Any]]) -> Summary | None:
    """Fold a two-column Nyckel/Värde sheet into a Summary.

    Returns None when there are no rows at all.
    """
    rows = list(rows or [])
    if not rows:
        return None
    summary = Summary()
    for raw in rows:
        row = _index_row(raw)
        label = clean_str(_lookup(row, ("Nyckel", "nyckel", "key")))
        if label is None:
            continue
        value = _lookup(row, ("Värde", "varde", "value"))
        label = label.lower()
        if label == "datum":
            summary.date = clean_str(value)
        elif label == "skapad":
            summary.created = clean_str(value)
        else:
            for needle, attr in _SUMMARY_KEYS:
                if needle in label:
                    setattr(summary, attr, parse_decimal(value))
                    break
    return summary


def role_kind(role: str | None) -> str:
    """Classify a free-text registry role as board_member, deputy or other."""
    if not role:
        return "other"
    if DEPUTY_ROLE.search(role):
        return "deputy"
    if BOARD_MEMBER_ROLE.search(role):
        return "board_member"
    return "other"
