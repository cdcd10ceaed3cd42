"""
GET /api/v1/dates and GET /api/v1/dates/{date}.

The per-date view reads the date directory's files directly (no index), so
it always reflects what is on disk right now.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.database import get_service
from api.models import DateDataResponse, DateListResponse
from ingest.locator import is_date_name
from store.service import DatasetService

router = APIRouter(prefix="/dates", tags=["dates"])


@router.get("", response_model=DateListResponse, summary="List available dates")
def list_dates(service: DatasetService = Depends(get_service)) -> DateListResponse:
    """Every date directory across all data roots, newest first."""
    return DateListResponse(dates=service.list_dates())


@router.get(
    "/{date}",
    response_model=DateDataResponse,
    summary="Merged data for one date",
    responses={
        400: {"description": "Malformed date", "content": {"application/json": {"example": {"error": "Bad request", "detail": "Invalid date '2026-01-15', expected YYYYMMDD", "status_code": 400}}}},
        404: {"description": "No directory for this date"},
    },
)
def get_date(date: str, service: DatasetService = Depends(get_service)) -> DateDataResponse:
    if not is_date_name(date):
        raise HTTPException(status_code=400, detail=f"Invalid date {date!r}, expected YYYYMMDD")
    payload = service.get_date_data(date)
    if payload is None:
        raise HTTPException(status_code=404, detail=f"No data for {date}")
    return DateDataResponse(**payload)
