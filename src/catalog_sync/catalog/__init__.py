"""
Game catalog model.

Canonical entry type, title normalization and the curated list.
"""

from catalog_sync.catalog.curated import DEFAULT_CURATED_TITLES, CuratedCatalog
from catalog_sync.catalog.models import (
    CatalogEntry,
    EnrichmentStatus,
    SyncCheckpoint,
    SyncReport,
)
from catalog_sync.catalog.titles import clean_search_title, normalized_key

__all__ = [
    "DEFAULT_CURATED_TITLES",
    "CatalogEntry",
    "CuratedCatalog",
    "EnrichmentStatus",
    "SyncCheckpoint",
    "SyncReport",
    "clean_search_title",
    "normalized_key",
]
