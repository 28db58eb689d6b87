"""
Provider import.

One-shot, user-triggered import of provider games into the catalog,
reconciled by the same rules as batch and eager sync.
"""

import random
from dataclasses import dataclass, field
from typing import Any

from catalog_sync.catalog.curated import CuratedCatalog
from catalog_sync.catalog.models import CatalogEntry, EnrichmentStatus
from catalog_sync.catalog.titles import normalized_key
from catalog_sync.logger import get_logger
from catalog_sync.providers.base import ProviderError
from catalog_sync.providers.client import ExternalCatalogClient
from catalog_sync.storage.store import CatalogStore
from catalog_sync.sync.reconciliation import entry_from_external, mark_synced, reconcile_record


@dataclass
class ImportReport:
    """Outcome of a multi-game import."""

    imported: list[CatalogEntry] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "imported": [entry.to_document() for entry in self.imported],
            "errors": self.errors,
        }


class CatalogImporter:
    """
    Imports provider games on demand.

    Unlike eager sync, an import fetches pricing too and stores a
    fully reconciled entry, replacing provider fields of an existing
    entry with the same title.
    """

    def __init__(
        self,
        client: ExternalCatalogClient,
        store: CatalogStore,
        curated: CuratedCatalog,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._curated = curated
        self._rng = rng or random.Random()
        self._logger = get_logger(__name__, component="importer")

    async def import_game(self, external_id: int) -> CatalogEntry:
        """
        Import a single game by metadata provider id.

        Raises:
            ProviderError: If the metadata fetch fails
            StoreIOError: If the entry cannot be persisted
        """
        record = await self._client.fetch_metadata(external_id)

        existing = await self._store.get_by_key(normalized_key(record.name))
        base = existing or entry_from_external(record).updated(is_external=False)
        is_curated = self._curated.is_curated(base.title)
        status = EnrichmentStatus.COMPLETE

        # Curated titles are priced locally and never queried
        if not is_curated:
            pricing_id = (
                base.pricing_provider_id
                or record.pricing_provider_id
                or await self._client.resolve_pricing_id(base.title)
            )
            if pricing_id is not None:
                base = base.updated(pricing_provider_id=pricing_id)
                try:
                    pricing = await self._client.fetch_pricing(pricing_id)
                except ProviderError as e:
                    self._logger.warning(
                        "Pricing unavailable, importing without it",
                        title=base.title,
                        app_id=pricing_id,
                        error=str(e),
                    )
                    status = EnrichmentStatus.PARTIAL
                else:
                    record = record.model_copy(update={"pricing": pricing})

        entry = reconcile_record(base, record, is_curated, rng=self._rng)
        stored = await self._store.upsert(mark_synced(entry, status))

        self._logger.info(
            "Imported game",
            external_id=external_id,
            title=stored.title,
            status=status.value,
            replaced=existing is not None,
            price=stored.price,
        )
        return stored

    async def import_many(self, external_ids: list[int]) -> ImportReport:
        """Import several games; provider failures are collected per id."""
        report = ImportReport()
        for external_id in external_ids:
            try:
                report.imported.append(await self.import_game(external_id))
            except ProviderError as e:
                self._logger.error("Import failed", external_id=external_id, error=str(e))
                report.errors.append(
                    {
                        "external_id": external_id,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }
                )
        return report

    async def import_listing(self, **filters: Any) -> ImportReport:
        """Import one page of a provider listing (genre, tag or platform)."""
        records = await self._client.list_games(**filters)
        self._logger.info("Importing provider listing", filters=filters, games=len(records))
        return await self.import_many([record.external_id for record in records])
