"""
Store package -- the SQLite index and the service layer built on it.
"""

from store.index_db import IndexStore
from store.query import SearchFilters
from store.service import BundleError, DatasetService

__all__ = ["IndexStore", "SearchFilters", "DatasetService", "BundleError"]
