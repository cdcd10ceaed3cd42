"""
GET /api/v1/search endpoint.

Free-text and capability-flag search across every indexed date.  Flag
parameters are lenient: "true", "1", "yes", "ja" switch a filter on, any
other value (or none) leaves it off.  ``limit`` falls back to the default
when it is not a number and is clamped to [1, APP_SEARCH_MAX_LIMIT].
"""

from fastapi import APIRouter, Depends
from fastapi import Query as FQuery

from api.database import get_service
from api.models import SearchResponse
from store.query import SearchFilters
from store.service import DatasetService
from utils.config import AppConfig

router = APIRouter(prefix="/search", tags=["search"])

_cfg = AppConfig.from_env()


def clamp_limit(raw: str | None, default: int = _cfg.search_limit,
                maximum: int = _cfg.search_max_limit) -> int:
    try:
        value = int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, maximum))


@router.get("", response_model=SearchResponse, summary="Search companies and people")
def search(
    q: str | None = FQuery(None, description="Case-insensitive substring", examples=["bygg"]),
    segment: str | None = FQuery(None, description="Exact segment"),
    lan: str | None = FQuery(None, description="Exact region (län)", examples=["Stockholm"]),
    has_mail: str | None = FQuery(None, alias="hasMail"),
    has_audit: str | None = FQuery(None, alias="hasAudit"),
    has_preview: str | None = FQuery(None, alias="hasPreview"),
    worthy: str | None = FQuery(None, description="Only companies worth a site"),
    has_email: str | None = FQuery(None, alias="hasEmail"),
    has_domain: str | None = FQuery(None, alias="hasDomain"),
    limit: str | None = FQuery(None, description="Max rows per entity list (default 200)"),
    service: DatasetService = Depends(get_service),
) -> SearchResponse:
    """Companies newest date first, one row per company; people only when *q* is set."""
    filters = SearchFilters.from_params({
        "q": q,
        "segment": segment,
        "lan": lan,
        "hasMail": has_mail,
        "hasAudit": has_audit,
        "hasPreview": has_preview,
        "worthy": worthy,
        "hasEmail": has_email,
        "hasDomain": has_domain,
    })
    return SearchResponse(**service.search(filters, clamp_limit(limit)))
