"""
Catalog persistence.

Durable catalog store with atomic upsert by normalized title.
"""

from catalog_sync.storage.store import (
    CatalogStore,
    JsonCatalogStore,
    StoreIOError,
    matches_filters,
    matches_query,
    relevance_key,
)

__all__ = [
    "CatalogStore",
    "JsonCatalogStore",
    "StoreIOError",
    "matches_filters",
    "matches_query",
    "relevance_key",
]
