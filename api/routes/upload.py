"""
POST /api/v1/upload/bundle endpoint.

Body is a zip archive of one date's export files; the ``X-Date`` header
names the date.  The archive is extracted into ``<primary root>/<date>/``
and that date is indexed straight away.  If indexing fails the upload
still succeeds (``indexed: false``) and the next lazy pass retries it.
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from api.database import get_service
from api.models import UploadResponse
from ingest.locator import is_date_name
from store.service import BundleError, DatasetService
from utils.common import format_bytes
from utils.config import AppConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

_cfg = AppConfig.from_env()
_MAX_BYTES = _cfg.max_upload_mb * 1024 * 1024


@router.post(
    "/bundle",
    response_model=UploadResponse,
    summary="Upload a zipped date directory",
    responses={
        400: {"description": "Missing/invalid X-Date, empty or invalid zip"},
        413: {"description": "Bundle larger than APP_MAX_UPLOAD_MB"},
    },
)
async def upload_bundle(
    request: Request,
    x_date: str | None = Header(None, description="Target date, YYYYMMDD"),
    content_length: int | None = Header(None),
    service: DatasetService = Depends(get_service),
) -> UploadResponse:
    if not x_date or not is_date_name(x_date):
        raise HTTPException(status_code=400,
                            detail="Invalid or missing X-Date header (expected YYYYMMDD)")
    if content_length is not None and content_length > _MAX_BYTES:
        raise HTTPException(status_code=413,
                            detail=f"File too large. Max size: {_cfg.max_upload_mb}MB")
    payload = await request.body()
    if len(payload) > _MAX_BYTES:
        raise HTTPException(status_code=413,
                            detail=f"File too large. Max size: {_cfg.max_upload_mb}MB")
    logger.info("Received %s for %s", format_bytes(len(payload)), x_date)
    try:
        result = await run_in_threadpool(service.ingest_bundle, x_date, payload)
    except BundleError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return UploadResponse(**result)
