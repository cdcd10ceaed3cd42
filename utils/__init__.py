"""Shared utilities for the export index tools."""

# Common utilities
from utils.common import format_bytes, elapsed

# Pattern definitions
from utils.patterns import (
    DATE_DIR,
    DATABASE_FILE,
    SPREADSHEET_FILE,
    LOCK_FILE,
)

# String utilities
from utils.strings import (
    YES_TOKENS,
    WORTHY_TOKENS,
    parse_decimal,
    clean_str,
    normalize_whitespace,
    is_truthy,
    build_search_text,
)

# Database utilities
from utils.database import (
    init_pragmas,
    open_connection,
    table_exists,
    list_tables,
    get_table_count,
    insert_rows,
    query_to_dicts,
)

# Caching
from utils.cache import TTLCache

# Configuration
from utils.config import Config, KnownValues, AppConfig

__all__ = [
    # Common
    "format_bytes",
    "elapsed",
    # Patterns
    "DATE_DIR",
    "DATABASE_FILE",
    "SPREADSHEET_FILE",
    "LOCK_FILE",
    # Strings
    "YES_TOKENS",
    "WORTHY_TOKENS",
    "parse_decimal",
    "clean_str",
    "normalize_whitespace",
    "is_truthy",
    "build_search_text",
    # Database
    "init_pragmas",
    "open_connection",
    "table_exists",
    "list_tables",
    "get_table_count",
    "insert_rows",
    "query_to_dicts",
    # Cache
    "TTLCache",
    # Config
    "Config",
    "KnownValues",
    "AppConfig",
]
