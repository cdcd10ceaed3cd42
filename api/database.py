"""
Service wiring for the API.

Provides a get_service() dependency returning the process-wide
DatasetService.  Data roots and the index path are resolved from
AppConfig (APP_DATA_DIRS / APP_INDEX_PATH) on first use; create_app()
can override them for tests.  Every service call opens its own SQLite
connection, so no per-request connection handling is needed here.
"""

import threading
from pathlib import Path

from fastapi import HTTPException

from store.service import DatasetService
from utils.config import AppConfig

_cfg = AppConfig.from_env()
_DATA_DIRS: list[Path] = list(_cfg.data_dirs)
_INDEX_PATH: Path | None = _cfg.index_path

_service: DatasetService | None = None
_service_lock = threading.Lock()


def configure(data_dirs=None, index_path: Path | None = None) -> None:
    """Override the data roots / index path and drop the cached service."""
    global _DATA_DIRS, _INDEX_PATH, _service
    with _service_lock:
        if data_dirs is not None:
            _DATA_DIRS = [Path(p) for p in data_dirs]
        if index_path is not None:
            _INDEX_PATH = Path(index_path)
        _service = None


def get_service() -> DatasetService:
    """FastAPI dependency: the shared DatasetService.

    Raises 503 if no data root is configured.
    """
    global _service
    if _service is not None:
        return _service
    with _service_lock:
        if _service is None:
            if not _DATA_DIRS:
                raise HTTPException(
                    status_code=503,
                    detail="No data directories configured. Set APP_DATA_DIRS.",
                )
            cfg = AppConfig.from_env()
            cfg.data_dirs = _DATA_DIRS
            cfg.index_path = _INDEX_PATH
            _service = DatasetService.from_config(cfg)
        return _service

