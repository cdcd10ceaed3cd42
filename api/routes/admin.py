"""
Admin endpoints: full reindex and destructive data clearing.

    POST   /api/v1/admin/reindex     drop the index and rebuild from disk
    DELETE /api/v1/admin/clear-data  delete every date directory and the index
"""

import logging

from fastapi import APIRouter, Depends

from api.database import get_service
from api.models import ClearDataResponse, IndexRunResponse
from store.service import DatasetService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reindex", response_model=IndexRunResponse, summary="Rebuild the index")
def reindex(service: DatasetService = Depends(get_service)) -> IndexRunResponse:
    report = service.reindex_all()
    return IndexRunResponse(**report.to_dict())


@router.delete("/clear-data", response_model=ClearDataResponse, summary="Delete all data")
def clear_data(service: DatasetService = Depends(get_service)) -> ClearDataResponse:
    result = service.clear_data()
    logger.warning("clear-data removed %d date folders", result["deleted_folders"])
    return ClearDataResponse(success=not result["errors"], **result)
