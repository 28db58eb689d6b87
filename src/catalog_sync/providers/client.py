"""
External catalog client.

Single entry point to both providers. Both underlying clients wait on
the same rate limiter, so every outbound call in the process is
spaced regardless of which provider or caller it serves.
"""

from typing import Any

from catalog_sync.catalog.titles import clean_search_title
from catalog_sync.config import Settings, get_settings
from catalog_sync.logger import get_logger
from catalog_sync.providers.base import ProviderError
from catalog_sync.providers.contracts import ExternalRecord, PricingRecord
from catalog_sync.providers.metadata import MetadataClient
from catalog_sync.providers.pricing import PricingClient
from catalog_sync.providers.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    get_rate_limiter,
)


class ExternalCatalogClient:
    """
    Read-only accessor for the metadata and pricing providers.

    Example:
        >>> async with ExternalCatalogClient() as client:
        ...     records = await client.search_by_query("hades")
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        rate_limiter: RateLimiter | None = None,
        metadata: MetadataClient | None = None,
        pricing: PricingClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Settings to build provider clients from (cached settings if None)
            rate_limiter: Limiter shared by both providers (process-wide if None)
            metadata: Prebuilt metadata client
            pricing: Prebuilt pricing client
        """
        if metadata is None or pricing is None:
            settings = settings or get_settings()
            rate_limiter = rate_limiter or get_rate_limiter(
                "providers",
                RateLimiterConfig.from_settings(settings.rate_limit),
            )
            common: dict[str, Any] = {
                "rate_limiter": rate_limiter,
                "retry_config": settings.retry,
            }
            metadata = metadata or MetadataClient(config=settings.metadata, **common)
            pricing = pricing or PricingClient(config=settings.pricing, **common)

        self._metadata = metadata
        self._pricing = pricing
        self._logger = get_logger(__name__, component="external_catalog_client")

    async def close(self) -> None:
        """Close both provider clients."""
        await self._metadata.close()
        await self._pricing.close()

    async def __aenter__(self) -> "ExternalCatalogClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def fetch_metadata(self, external_id: int) -> ExternalRecord:
        """Fetch genres, platforms and details for a metadata provider id."""
        return await self._metadata.fetch_metadata(external_id)

    async def fetch_pricing(self, pricing_provider_id: int) -> PricingRecord:
        """Fetch current pricing for a pricing provider id."""
        return await self._pricing.fetch_pricing(pricing_provider_id)

    async def search_by_query(self, text: str, *, limit: int | None = None) -> list[ExternalRecord]:
        """Best-effort free-text search at the metadata provider."""
        return await self._metadata.search_by_query(text, limit=limit)

    async def list_games(self, **filters: Any) -> list[ExternalRecord]:
        """List provider games by genre, tag or platform."""
        return await self._metadata.list_games(**filters)

    async def resolve_pricing_id(self, title: str) -> int | None:
        """
        Find a pricing provider id for a title.

        Tries the title as-is, then with years and edition noise
        removed. Lookup failures count as "no match".
        """
        candidates = [title]
        cleaned = clean_search_title(title)
        if cleaned != title and len(cleaned) > 2:
            candidates.append(cleaned)

        for candidate in candidates:
            try:
                app_id = await self._pricing.search_app_id(candidate)
            except ProviderError as e:
                self._logger.warning("Pricing id lookup failed", term=candidate, error=str(e))
                continue
            if app_id is not None:
                self._logger.info("Resolved pricing id", title=title, term=candidate, app_id=app_id)
                return app_id

        self._logger.info("No pricing id found", title=title)
        return None
