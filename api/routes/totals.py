"""
GET /api/v1/totals endpoint.

Whole-dataset counts over the index.  The service caches the result for
APP_TOTALS_CACHE_TTL seconds and drops the cache whenever a date is
(re)indexed.
"""

from fastapi import APIRouter, Depends

from api.database import get_service
from api.models import TotalsResponse
from store.service import DatasetService

router = APIRouter(prefix="/totals", tags=["totals"])


@router.get("", response_model=TotalsResponse, summary="Aggregate totals across all dates")
def get_totals(service: DatasetService = Depends(get_service)) -> TotalsResponse:
    return TotalsResponse(**service.get_totals())
