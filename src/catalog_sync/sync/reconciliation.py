"""
Reconciliation engine.

Pure functions that merge provider data into catalog entries under
the catalog's precedence rules. Nothing here performs I/O; the batch
runner, the search service and the importer all go through these.
"""

import random
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timezone
from typing import Any

from catalog_sync.catalog.curated import CuratedCatalog
from catalog_sync.catalog.models import CatalogEntry, EnrichmentStatus
from catalog_sync.catalog.titles import normalized_key
from catalog_sync.providers.contracts import ExternalRecord, PricingRecord

# Synthetic curated prices are a whole base in [30, 60) plus .99
SYNTHETIC_PRICE_MIN_BASE = 30
SYNTHETIC_PRICE_MAX_BASE = 60
SYNTHETIC_PRICE_CENTS = 0.99

PLACEHOLDER_VALUES = frozenset({"", "unknown"})

# Legacy document keys and the field each one maps to
_LEGACY_KEYS = {
    "_id": "id",
    "rawgId": "externalId",
    "steamAppId": "pricingProviderId",
    "discount": "discountPercent",
    "released": "releaseDate",
}


def _clean_names(values: Any) -> list[str]:
    """Coerce a string, list or null into a list of meaningful names."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        name = value.strip()
        if name.lower() in PLACEHOLDER_VALUES or name in cleaned:
            continue
        cleaned.append(name)
    return cleaned


def normalize_schema(document: Mapping[str, Any]) -> CatalogEntry:
    """
    Migrate a stored document to the current entry schema.

    Folds the legacy singular `platform` / `genre` fields into the
    `platforms` / `genres` arrays, renames legacy keys, drops "Unknown"
    placeholders and guarantees both arrays exist, even when empty.

    Args:
        document: Raw persisted document (camelCase or snake_case keys)

    Returns:
        CatalogEntry: Validated entry

    Raises:
        pydantic.ValidationError: If the document has no usable title
            or carries out-of-range values
    """
    data = dict(document)

    for legacy, current in _LEGACY_KEYS.items():
        if legacy in data:
            value = data.pop(legacy)
            if data.get(current) is None:
                data[current] = value

    for single, plural in (("platform", "platforms"), ("genre", "genres")):
        legacy_value = data.pop(single, None)
        values = _clean_names(data.get(plural))
        if not values:
            values = _clean_names(legacy_value)
        data[plural] = values

    # Older documents stored prices without a separate original price
    if data.get("price") is None:
        data["price"] = 0.0
    if data.get("originalPrice") is None and data.get("original_price") is None:
        data["originalPrice"] = data["price"]

    data.pop("normalizedKey", None)
    data.pop("normalized_key", None)
    return CatalogEntry.model_validate(data)


def merge_metadata(local: CatalogEntry, external: ExternalRecord) -> CatalogEntry:
    """
    Merge provider metadata into an entry.

    List and descriptive fields are only overwritten by non-empty
    provider values, so a sparse response never erases local data.
    """
    changes: dict[str, Any] = {}

    platforms = _clean_names(external.platforms)
    if platforms:
        changes["platforms"] = platforms

    genres = _clean_names(external.genres)
    if genres:
        changes["genres"] = genres

    for field_name, value in (
        ("developer", external.developer),
        ("publisher", external.publisher),
        ("image", external.image),
        ("description", external.description),
        ("rating", external.rating),
        ("metacritic", external.metacritic),
    ):
        if value not in (None, ""):
            changes[field_name] = value

    if external.released is not None and local.release_date is None:
        changes["release_date"] = _as_instant(external.released)
    if local.external_id is None:
        changes["external_id"] = external.external_id
    if local.pricing_provider_id is None and external.pricing_provider_id:
        changes["pricing_provider_id"] = external.pricing_provider_id

    if not changes:
        return local
    return local.updated(**changes)


def synthetic_price(rng: random.Random | None = None) -> float:
    """Draw a curated price: a base in [30, 60) plus .99."""
    rng = rng or random.Random()
    base = rng.randrange(SYNTHETIC_PRICE_MIN_BASE, SYNTHETIC_PRICE_MAX_BASE)
    return round(base + SYNTHETIC_PRICE_CENTS, 2)


def apply_pricing_policy(
    local: CatalogEntry,
    pricing: PricingRecord | None,
    is_curated: bool,
    *,
    rng: random.Random | None = None,
) -> CatalogEntry:
    """
    Apply the catalog pricing rules.

    Curated titles without a price get a synthetic price and keep it;
    provider data is ignored for them. For every other title the
    provider is ground truth: a free-to-play report resets the price
    to zero, and a differing final price replaces price, original
    price, currency and sale fields.

    Args:
        local: Current entry
        pricing: Provider pricing (None when nothing was fetched)
        is_curated: Whether the title is on the curated list
        rng: Random source for synthetic prices

    Returns:
        CatalogEntry: Entry with pricing applied (same object if unchanged)
    """
    if is_curated:
        if local.has_price:
            return local
        price = synthetic_price(rng)
        return local.updated(
            price=price,
            original_price=price,
            currency="USD",
            on_sale=False,
            discount_percent=0,
        )

    if pricing is None:
        return local

    if pricing.is_free:
        if (
            local.price == 0
            and local.original_price == 0
            and local.currency == "USD"
            and not local.on_sale
            and local.discount_percent == 0
        ):
            return local
        return local.updated(
            price=0.0,
            original_price=0.0,
            currency="USD",
            on_sale=False,
            discount_percent=0,
        )

    if local.price == pricing.final:
        return local

    on_sale = pricing.discount_percent > 0 and pricing.initial > pricing.final
    return local.updated(
        price=pricing.final,
        original_price=pricing.initial,
        currency=pricing.currency,
        on_sale=on_sale,
        discount_percent=pricing.discount_percent if on_sale else 0,
    )


def reconcile_record(
    local: CatalogEntry,
    external: ExternalRecord,
    is_curated: bool,
    *,
    rng: random.Random | None = None,
) -> CatalogEntry:
    """Merge a provider record and any pricing attached to it."""
    merged = merge_metadata(local, external)
    return apply_pricing_policy(merged, external.pricing, is_curated, rng=rng)


def dedupe_by_normalized_key(records: Iterable[ExternalRecord]) -> list[ExternalRecord]:
    """Keep the first record for each normalized title, in input order."""
    seen: set[str] = set()
    unique: list[ExternalRecord] = []
    for record in records:
        key = normalized_key(record.name)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def entry_from_external(record: ExternalRecord) -> CatalogEntry:
    """Build a freshly discovered, not yet enriched entry."""
    return CatalogEntry(
        title=record.name.strip(),
        external_id=record.external_id,
        pricing_provider_id=record.pricing_provider_id,
        platforms=_clean_names(record.platforms),
        genres=_clean_names(record.genres),
        developer=record.developer,
        publisher=record.publisher,
        image=record.image,
        rating=record.rating,
        metacritic=record.metacritic,
        release_date=_as_instant(record.released) if record.released else None,
        is_external=True,
        enrichment_status=EnrichmentStatus.PENDING,
    )


def needs_enrichment(entry: CatalogEntry, curated: CuratedCatalog) -> bool:
    """
    Decide whether a batch pass should work on an entry.

    True when platforms or genres are missing, when a curated title
    still has no price, or when a non-curated title has not been
    completely enriched yet.
    """
    if not entry.platforms or len(entry.genres) < 1:
        return True
    if curated.is_curated(entry.title):
        return not entry.has_price
    return entry.enrichment_status != EnrichmentStatus.COMPLETE


def mark_synced(
    entry: CatalogEntry,
    status: EnrichmentStatus,
    *,
    now: datetime | None = None,
) -> CatalogEntry:
    """Record a successful merge."""
    return entry.updated(
        enrichment_status=status,
        is_external=entry.is_external and status != EnrichmentStatus.COMPLETE,
        last_synced_at=now or datetime.now(timezone.utc),
    )


def _as_instant(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)
