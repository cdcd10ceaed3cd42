"""Configuration management for the export index.

Provides:
- Config: base class with a loggable dict view (secrets masked)
- KnownValues: sheet names, table names and filename markers per entity kind
- AppConfig: application settings loaded from APP_* environment variables
"""

import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Any


class Config:
    """Base configuration class for organizing application settings."""

    # Attribute names whose values never appear in to_dict()
    _secret_keys: tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to a dictionary suitable for logging.

        Returns:
            Dictionary of all public config attributes, secrets masked
        """
        return {
            k: ("***" if v and k in self._secret_keys else v)
            for k, v in self.__dict__.items() if not k.startswith("_")
        }


class KnownValues:
    """Fixed lookup data describing the export formats."""

    ENTITY_KINDS = ("companies", "people", "mails", "audits", "evaluations")

    # Workbook sheet names tried in order per kind
    SHEET_NAMES = MappingProxyType({
        "companies": ("Huvuddata", "Data", "Companies", "companies"),
        "people": ("Personer", "People", "Styrelse", "personer"),
        "mails": ("Mails", "Mail", "mails", "mail"),
        "audits": ("Audits", "audits", "Audit"),
        "evaluations": ("Evaluation", "Evaluations", "evaluation"),
        "summary": ("Sammanfattning", "Summary", "sammanfattning"),
    })

    # Tables probed in embedded database files, in order per kind
    TABLE_NAMES = MappingProxyType({
        "companies": ("companies",),
        "people": ("people", "personer"),
        "mails": ("mails", "mail"),
        "audits": ("audits", "audit"),
        "evaluations": ("evaluations", "evaluation"),
    })

    # Ordered filename markers that win outright for a kind. Earlier markers
    # are stronger; files without any marker fall back to first-non-empty.
    PRECEDENCE_MARKERS = MappingProxyType({
        "companies": ("final",),
        "people": ("final",),
    })

    # Raw registry exports: their first sheet is company data when no
    # named company sheet exists
    RAW_EXPORT_MARKER = "kungorelser"
    FINAL_MARKER = "final"

    UNKNOWN_LABEL = "Okänt"
    UNKNOWN_STATUS = "unknown"


def _split_csv(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


class AppConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have defaults so the application works out of the box.

    Environment variables:
        APP_DATA_DIRS: Comma-separated data roots in priority order
            (default: /var/data,./data_input)
        APP_INDEX_PATH: Index file (default: <primary root>/_index.sqlite)
        APP_PORT: API server port (default: 8000)
        APP_HOST: API server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_API_TOKEN: Bearer token required on /api/v1 when set
        APP_SEARCH_LIMIT: Default search result limit (default: 200)
        APP_SEARCH_MAX_LIMIT: Upper bound for the limit param (default: 1000)
        APP_MAX_UPLOAD_MB: Largest accepted bundle (default: 100)
        APP_TOTALS_CACHE_TTL: Seconds to cache totals (default: 60)
    """

    _secret_keys = ("api_token",)

    def __init__(self) -> None:
        super().__init__()
        self.data_dirs: list[Path] = [
            Path(p) for p in _split_csv(os.getenv("APP_DATA_DIRS", "/var/data,./data_input"))
        ]
        raw_index = os.getenv("APP_INDEX_PATH", "")
        self.index_path: Path | None = Path(raw_index) if raw_index else None
        self.api_port = int(os.getenv("APP_PORT", "8000"))
        self.api_host = os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*" else _split_csv(raw_origins)
        )
        self.api_token: str = os.getenv("APP_API_TOKEN", "")
        self.search_limit = int(os.getenv("APP_SEARCH_LIMIT", "200"))
        self.search_max_limit = int(os.getenv("APP_SEARCH_MAX_LIMIT", "1000"))
        self.max_upload_mb = int(os.getenv("APP_MAX_UPLOAD_MB", "100"))
        self.totals_cache_ttl = float(os.getenv("APP_TOTALS_CACHE_TTL", "60"))

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()

    def resolve_index_path(self, primary_root: Path) -> Path:
        """Return the configured index path or the default inside *primary_root*."""
        if self.index_path is not None:
            return self.index_path
        return primary_root / "_index.sqlite"
