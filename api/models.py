"""
Pydantic response models for the export index API.

Entity rows (companies, people, ...) are returned as plain dicts so new
export columns flow through without a model change; the envelopes around
them are typed for the OpenAPI docs.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class DateOut(BaseModel):
    """One available export date."""
    date: str = Field(..., description="Directory name, YYYYMMDD", examples=["20260115"])
    display_label: str = Field(..., description="Human-readable date", examples=["15 januari 2026"])


class DateListResponse(BaseModel):
    dates: list[DateOut] = Field(..., description="Available dates, newest first")


class SourceErrorOut(BaseModel):
    file_name: str = Field(..., examples=["20260115_final.xlsx"])
    error_type: str = Field(..., examples=["BadZipFile"])
    error_detail: str
    timestamp: str


class DateDataResponse(BaseModel):
    """Merged content of one date directory, read straight from its files."""
    date: str = Field(..., examples=["20260115"])
    display_label: str = Field(..., examples=["15 januari 2026"])
    provenance: str = Field(
        ...,
        description="Strongest source behind the company/person data",
        examples=["spreadsheet-final"],
    )
    companies: list[dict[str, Any]] = Field(default_factory=list)
    people: list[dict[str, Any]] = Field(default_factory=list)
    mails: list[dict[str, Any]] = Field(default_factory=list)
    audits: list[dict[str, Any]] = Field(default_factory=list)
    evaluations: list[dict[str, Any]] = Field(default_factory=list)
    summary: dict[str, Any] | None = Field(None, description="Key/value overview sheet, if any")
    stats: dict[str, Any] = Field(..., description="Counts computed from the merged data")
    source_errors: list[SourceErrorOut] = Field(
        default_factory=list, description="Files that could not be read and were skipped"
    )


class TotalsResponse(BaseModel):
    """Whole-dataset counts; a company seen on several dates counts once."""
    total_dates: int = Field(..., examples=[12])
    total_companies: int = Field(..., examples=[4810])
    total_people: int = Field(..., examples=[9120])
    total_mails: int = Field(..., examples=[640])
    total_audits: int = Field(..., examples=[310])
    total_evaluations: int = Field(..., examples=[520])
    companies_with_phone: int = Field(..., examples=[2300])
    companies_with_mail: int = Field(..., examples=[600])
    companies_with_audit: int = Field(..., examples=[300])
    companies_with_preview: int = Field(..., examples=[150])
    companies_worthy_site: int = Field(..., examples=[410])
    companies_with_email: int = Field(..., examples=[3100])
    companies_with_domain: int = Field(..., examples=[3500])
    segments: dict[str, int] = Field(..., description="Distinct companies per segment")
    regions: dict[str, int] = Field(..., description="Distinct companies per region (län)")
    domain_statuses: dict[str, int] = Field(..., description="Distinct companies per domain status")


class SearchResponse(BaseModel):
    companies: list[dict[str, Any]] = Field(
        ..., description="Matching companies, newest date first, one per company"
    )
    people: list[dict[str, Any]] = Field(
        ..., description="Matching people; empty unless a query string was given"
    )
    total_companies: int = Field(..., description="Matches before the limit was applied")
    total_people: int = Field(..., description="Matches before the limit was applied")


class UploadResponse(BaseModel):
    success: bool = True
    date: str = Field(..., examples=["20260115"])
    path: str = Field(..., description="Directory the bundle was extracted into")
    files_extracted: int = Field(..., examples=[4])
    indexed: bool = Field(..., description="False when extraction worked but indexing failed")


class IndexRunResponse(BaseModel):
    status: str = Field(..., examples=["completed"])
    elapsed_seconds: float
    indexed_dates: list[str]
    rows_written: int
    skips: list[dict[str, str]] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    source_errors: list[dict[str, str]] = Field(
        default_factory=list, description="Source files that could not be read, per date")


class ClearDataResponse(BaseModel):
    success: bool
    deleted_folders: int
    folders: list[str]
    errors: list[str] = Field(default_factory=list)
