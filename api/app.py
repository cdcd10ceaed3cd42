"""
FastAPI application factory.

Usage:
    python -m api.app                                   # Dev server on port 8000
    APP_DATA_DIRS=/var/data,./data_input python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Structured JSON logging when APP_LOG_FORMAT=json.
CORS middleware with configurable origins via APP_CORS_ORIGINS.
Bearer-token guard on /api/v1 when APP_API_TOKEN is set.
"""

import json
import logging
import sqlite3
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import api.database as _db_mod
from api.auth import require_token, set_api_token
from api.database import get_service
from api.routes import admin, dates, search, totals, upload
from utils.config import AppConfig

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()


# ── Structured JSON logging ──────────────────────────────────────────────────
class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


_logger = logging.getLogger("export_index_api")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log where data is read from; warn when no root exists yet."""
    _logger.info("Effective config: %s", _cfg.to_dict())
    service = get_service()
    roots = service.locator.existing_roots()
    if not roots:
        _logger.warning("No data root exists yet (configured: %s)",
                        ", ".join(str(r) for r in service.locator.roots))
    _logger.info("Serving dates from %s, index at %s",
                 ", ".join(str(r) for r in roots) or "-", service.store.path)
    yield


def create_app(
    data_dirs: list[Path] | None = None,
    index_path: Path | None = None,
    api_token: str | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        data_dirs: Override the data roots (useful for testing).
        index_path: Override the index file location.
        api_token: Override APP_API_TOKEN; an empty string disables auth.

    Returns:
        Configured FastAPI application instance.
    """
    if data_dirs is not None or index_path is not None:
        _db_mod.configure(data_dirs=data_dirs, index_path=index_path)
    if api_token is not None:
        set_api_token(api_token)

    app = FastAPI(
        title="Export Index API",
        summary="Search and totals across dated company export directories.",
        description=(
            "## Export Index API\n\n"
            "Each `YYYYMMDD` directory under the data roots holds one run's "
            "exports (SQLite databases and XLSX workbooks).  Files are "
            "reconciled into one view per date and cached in a SQLite index "
            "for cross-date search and totals.\n\n"
            "### Key concepts\n"
            "- **Provenance** tells which kind of source file won for a date.\n"
            "- **Capability flags** (has mail, audit, preview, worthy site, "
            "email, domain) are derived from the date's linked rows.\n"
            "- **Totals** count each company once across all dates."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "dates", "description": "Available dates and per-date merged data."},
            {"name": "search", "description": "Company and person search across dates."},
            {"name": "totals", "description": "Whole-dataset aggregate counts."},
            {"name": "upload", "description": "Zip bundle upload for one date."},
            {"name": "admin", "description": "Reindex and destructive data clearing."},
            {"name": "meta", "description": "Health check."},
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with a short id that is echoed in X-Request-ID."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if _cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        if duration_ms > 2000:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Error handling ────────────────────────────────────────────────────────
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
                "status_code": 500,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"error": "Bad request", "detail": str(exc), "status_code": 400},
        )

    @app.exception_handler(sqlite3.OperationalError)
    async def index_busy_handler(request: Request, exc: sqlite3.OperationalError):
        return JSONResponse(
            status_code=503,
            content={"error": "Index unavailable", "detail": str(exc), "status_code": 503},
        )

    # ── Health check ──────────────────────────────────────────────────────────
    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 OK with the index location and indexed date count."""
        service = get_service()
        try:
            indexed = len(service.store.indexed_dates())
        except sqlite3.Error as e:
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "error": str(e)},
            )
        return {
            "status": "ok",
            "index": str(service.store.path),
            "indexed_dates": indexed,
            "data_roots": [str(r) for r in service.locator.existing_roots()],
        }

    # ── Register routers ──────────────────────────────────────────────────────
    prefix = "/api/v1"
    guarded = [Depends(require_token)]
    app.include_router(dates.router,  prefix=prefix, dependencies=guarded)
    app.include_router(search.router, prefix=prefix, dependencies=guarded)
    app.include_router(totals.router, prefix=prefix, dependencies=guarded)
    app.include_router(upload.router, prefix=prefix, dependencies=guarded)
    app.include_router(admin.router,  prefix=prefix, dependencies=guarded)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.app:app", host=_cfg.api_host, port=_cfg.api_port, reload=False)
