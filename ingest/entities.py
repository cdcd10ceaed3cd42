"""
Canonical entity shapes for one date's export.

Every source format (embedded SQLite files, Excel workbooks with Swedish or
snake_case headers) is normalised into these dataclasses by
``ingest.normalize``.  Optional fields are ``None`` when absent; natural-key
fields are ``""`` so key composition never sees ``None``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any


@dataclass
class Company:
    folder_id: str = ""
    registration_id: str = ""
    org_number: str = ""
    name: str = ""
    registration_date: str | None = None
    publication_date: str | None = None
    region: str | None = None
    seat: str | None = None
    address: str | None = None
    email: str | None = None
    company_type: str | None = None
    founded: str | None = None
    business_description: str | None = None
    financial_year: str | None = None
    share_capital: str | None = None
    share_count: str | None = None
    signing_authority: str | None = None
    board_members: str | None = None
    board_deputies: str | None = None
    board_other: str | None = None
    segment: str | None = None
    source_url: str | None = None
    # research / enrichment
    domain_guess: str | None = None
    domain_verified: str | None = None
    domain_confidence: float | None = None
    domain_status: str | None = None
    emails_found: str | None = None
    phones_found: str | None = None
    people_count: float | None = None
    research_done: str | None = None
    # evaluation outcome copied onto the company row
    worth_site: str | None = None
    confidence: str | None = None
    preview_url: str | None = None
    audit_link: str | None = None

    @property
    def key(self) -> str:
        """Natural key: folder id, else org number."""
        return self.folder_id or self.org_number


@dataclass
class Person:
    registration_id: str = ""
    folder_id: str = ""
    company_name: str = ""
    org_number: str = ""
    personal_id: str = ""
    role: str | None = None
    last_name: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None

    @property
    def key(self) -> tuple[str, str] | None:
        """(personal_id, registration_id); None means never deduplicate."""
        if not self.personal_id:
            return None
        return (self.personal_id, self.registration_id)


@dataclass
class Mail:
    folder_id: str = ""
    company_name: str = ""
    email: str = ""
    subject: str = ""
    body: str | None = None
    cost_sek: float | None = None
    domain_status: str | None = None
    preview_url: str | None = None
    audit_note: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.folder_id, self.email, self.subject)


@dataclass
class Audit:
    folder_id: str = ""
    company_name: str = ""
    url: str = ""
    audit_date: str = ""
    industry: str | None = None
    overall: float | None = None
    design: float | None = None
    content: float | None = None
    usability: float | None = None
    mobile: float | None = None
    seo: float | None = None
    strengths: str | None = None
    weaknesses: str | None = None
    recommendations: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.folder_id, self.url, self.audit_date)


@dataclass
class Evaluation:
    registration_id: str = ""
    folder_id: str = ""
    company_name: str = ""
    verdict: str | None = None
    confidence: str | None = None
    rationale: str | None = None
    preview_url: str | None = None

    @property
    def key(self) -> str:
        # registration_id only until linkage has resolved the folder
        return self.folder_id or self.registration_id


@dataclass
class Summary:
    """Key/value overview sheet written by the pipeline for each run."""

    date: str | None = None
    created: str | None = None
    total_companies: float | None = None
    with_domain: float | None = None
    mails_generated: float | None = None
    evaluated: float | None = None
    worthy: float | None = None
    with_preview: float | None = None


@dataclass
class CapabilityFlags:
    has_mail: bool = False
    has_audit: bool = False
    has_preview: bool = False
    worthy_site: bool = False
    has_email: bool = False
    has_domain: bool = False

    NAMES = ("has_mail", "has_audit", "has_preview", "worthy_site", "has_email", "has_domain")

    def to_dict(self) -> dict[str, bool]:
        return {n: getattr(self, n) for n in self.NAMES}


@dataclass
class NormalizedData:
    """All entities for one date."""

    companies: list[Company] = field(default_factory=list)
    people: list[Person] = field(default_factory=list)
    mails: list[Mail] = field(default_factory=list)
    audits: list[Audit] = field(default_factory=list)
    evaluations: list[Evaluation] = field(default_factory=list)
    summary: Summary | None = None

    def counts(self) -> dict[str, int]:
        return {
            "companies": len(self.companies),
            "people": len(self.people),
            "mails": len(self.mails),
            "audits": len(self.audits),
            "evaluations": len(self.evaluations),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "companies": [asdict(c) for c in self.companies],
            "people": [asdict(p) for p in self.people],
            "mails": [asdict(m) for m in self.mails],
            "audits": [asdict(a) for a in self.audits],
            "evaluations": [asdict(e) for e in self.evaluations],
            "summary": asdict(self.summary) if self.summary else None,
        }


ENTITY_TYPES = {
    "companies": Company,
    "people": Person,
    "mails": Mail,
    "audits": Audit,
    "evaluations": Evaluation,
}


def field_names(cls) -> tuple[str, ...]:
    """Dataclass field names in declaration order (index column order)."""
    return tuple(f.name for f in fields(cls))
