"""
Eager sync search.

Serves live catalog searches. Local matches come from the store; the
metadata provider is always queried as well, and every title it
returns that the catalog does not know yet is persisted right away,
so the next identical search resolves locally.
"""

import asyncio
from typing import Any, Literal

from pydantic import BaseModel, Field

from catalog_sync.catalog.models import CatalogEntry
from catalog_sync.catalog.titles import normalized_key
from catalog_sync.logger import get_logger
from catalog_sync.providers.base import ProviderError
from catalog_sync.providers.client import ExternalCatalogClient
from catalog_sync.storage.store import (
    CatalogStore,
    StoreIOError,
    matches_filters,
    relevance_key,
)
from catalog_sync.sync.reconciliation import dedupe_by_normalized_key, entry_from_external

MIN_QUERY_LENGTH = 2


class SearchResponse(BaseModel):
    """Unified search result."""

    query: str
    results: list[CatalogEntry] = Field(default_factory=list)
    source: Literal["local", "mixed"] = "local"
    discovered: int = Field(default=0, description="Entries created by this search")

    def to_dict(self) -> dict[str, Any]:
        """Serialize with results as persisted documents."""
        return {
            "query": self.query,
            "source": self.source,
            "discovered": self.discovered,
            "results": [entry.to_document() for entry in self.results],
        }


class EagerSyncSearchService:
    """
    Search with write-through discovery.

    Safe to call concurrently: new titles are persisted with the
    store's atomic insert-if-absent, so racing identical searches
    create a single entry.

    Example:
        >>> service = EagerSyncSearchService(client, store)
        >>> response = await service.search("cyber", platform="PC")
    """

    def __init__(
        self,
        client: ExternalCatalogClient,
        store: CatalogStore,
        *,
        limit: int = 20,
        external_limit: int | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: Provider accessor
            store: Catalog to search and write through to
            limit: Maximum results returned
            external_limit: Provider results requested (client default if None)
        """
        self._client = client
        self._store = store
        self._limit = limit
        self._external_limit = external_limit
        self._background: set[asyncio.Task[tuple[list[CatalogEntry], int]]] = set()
        self._logger = get_logger(__name__, component="eager_search")

    async def search(
        self,
        query: str,
        *,
        genre: str | None = None,
        platform: str | None = None,
        developer: str | None = None,
    ) -> SearchResponse:
        """
        Search local and provider catalogs.

        Queries shorter than two characters return nothing without any
        provider call. Provider or write-through failures degrade to
        whatever results are still available; this never raises for them.

        Args:
            query: Search text
            genre: Genre substring filter
            platform: Platform substring filter
            developer: Developer substring filter

        Returns:
            SearchResponse: Local and discovered entries, most relevant first
        """
        text = query.strip()
        if len(text) < MIN_QUERY_LENGTH:
            return SearchResponse(query=text)

        filters = {"genre": genre, "platform": platform, "developer": developer}

        try:
            local = await self._store.search(text, limit=self._limit, **filters)
        except StoreIOError as e:
            self._logger.warning("Local search failed", query=text, error=str(e))
            local = []

        # Discovery keeps running if the caller goes away; its writes serve later searches
        task = asyncio.ensure_future(self._discover(text))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        discovered, created = await asyncio.shield(task)

        external = [entry for entry in discovered if matches_filters(entry, **filters)]

        merged: dict[str, CatalogEntry] = {}
        for entry in [*local, *external]:
            merged.setdefault(entry.normalized_key, entry)

        results = sorted(merged.values(), key=lambda e: relevance_key(e, text))[: self._limit]
        added_by_provider = len(merged) > len({e.normalized_key for e in local})

        self._logger.info(
            "Search complete",
            query=text,
            local=len(local),
            external=len(external),
            returned=len(results),
        )
        return SearchResponse(
            query=text,
            results=results,
            source="mixed" if added_by_provider else "local",
            discovered=created,
        )

    async def _discover(self, text: str) -> tuple[list[CatalogEntry], int]:
        """
        Query the provider and persist titles the catalog does not know yet.

        Returns:
            The catalog entries for every provider match and how many
            of them this call created
        """
        try:
            records = await self._client.search_by_query(text, limit=self._external_limit)
        except ProviderError as e:
            self._logger.warning(
                "Provider search failed, serving local results",
                query=text,
                error_type=type(e).__name__,
                error=str(e),
            )
            return [], 0

        try:
            persisted = await self._store.keys()
        except StoreIOError as e:
            self._logger.warning("Cannot read persisted keys", error=str(e))
            persisted = set()

        entries: list[CatalogEntry] = []
        created = 0
        for record in dedupe_by_normalized_key(records):
            key = normalized_key(record.name)
            if key in persisted:
                existing = await self._store.get_by_key(key)
                if existing is not None:
                    entries.append(existing)
                    continue

            candidate = entry_from_external(record)
            try:
                stored, was_created = await self._store.insert_if_absent(candidate)
            except StoreIOError as e:
                self._logger.warning(
                    "Could not persist discovered title",
                    title=candidate.title,
                    error=str(e),
                )
                stored, was_created = candidate, False
            if was_created:
                created += 1
            entries.append(stored)

        if created:
            self._logger.info("Discovered new titles", query=text, created=created)
        return entries, created
