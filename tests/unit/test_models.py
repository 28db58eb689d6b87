"""Tests for the catalog entry model."""

from datetime import datetime, timezone

import pytest

from catalog_sync.catalog.models import CatalogEntry, EnrichmentStatus, SyncCheckpoint


class TestCatalogEntry:
    """Tests for CatalogEntry."""

    def test_normalized_key_derived(self) -> None:
        """The key always follows the title."""
        entry = CatalogEntry(title="God of War (2018)")

        assert entry.normalized_key == "god of war"
        assert entry.updated(title="Hades").normalized_key == "hades"

    def test_given_key_ignored(self) -> None:
        """A stale stored key is recomputed."""
        entry = CatalogEntry(title="Hades", normalized_key="something else")

        assert entry.normalized_key == "hades"

    def test_defaults(self) -> None:
        """New entries are pending and unpriced."""
        entry = CatalogEntry(title="Hades")

        assert entry.enrichment_status == EnrichmentStatus.PENDING
        assert entry.platforms == []
        assert entry.genres == []
        assert entry.has_price is False
        assert len(entry.id) == 32

    def test_sale_requires_discount(self) -> None:
        """on_sale is cleared unless the original price exceeds the price."""
        entry = CatalogEntry(
            title="Hades",
            price=24.99,
            original_price=24.99,
            on_sale=True,
            discount_percent=10,
        )

        assert entry.on_sale is False
        assert entry.discount_percent == 0

    def test_valid_sale_kept(self) -> None:
        """A real discount is preserved."""
        entry = CatalogEntry(title="Hades", price=12.49, original_price=24.99, on_sale=True, discount_percent=50)

        assert entry.on_sale is True
        assert entry.discount_percent == 50

    def test_negative_price_rejected(self) -> None:
        """Test price bounds."""
        with pytest.raises(ValueError):
            CatalogEntry(title="Hades", price=-1)

    def test_empty_title_rejected(self) -> None:
        """Test title validation."""
        with pytest.raises(ValueError):
            CatalogEntry(title="")

    def test_document_uses_camel_case(self) -> None:
        """Persisted documents use camelCase keys."""
        document = CatalogEntry(title="Hades", external_id=3498, original_price=24.99).to_document()

        assert document["normalizedKey"] == "hades"
        assert document["externalId"] == 3498
        assert document["originalPrice"] == 24.99
        assert document["enrichmentStatus"] == "pending"
        assert "external_id" not in document

    def test_document_round_trip(self) -> None:
        """A document validates back into an equal entry."""
        entry = CatalogEntry(
            title="Hades",
            platforms=["PC"],
            genres=["Action"],
            last_synced_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        assert CatalogEntry.model_validate(entry.to_document()) == entry

    def test_content_equals_ignores_sync_time(self) -> None:
        """Only the timestamp differs, so content is equal."""
        entry = CatalogEntry(title="Hades")
        touched = entry.updated(last_synced_at=datetime.now(timezone.utc))

        assert entry.content_equals(touched)
        assert not entry.content_equals(touched.updated(price=9.99))


class TestSyncCheckpoint:
    """Tests for SyncCheckpoint."""

    def test_percentage(self) -> None:
        """Test completion percentage."""
        checkpoint = SyncCheckpoint(total=4, processed=1)

        assert checkpoint.percentage == 25.0
        assert checkpoint.to_dict()["percentage"] == 25.0

    def test_empty_run_is_complete(self) -> None:
        """An empty catalog reports 100%."""
        assert SyncCheckpoint(total=0).percentage == 100.0
