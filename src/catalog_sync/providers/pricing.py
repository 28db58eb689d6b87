"""
Pricing provider client (Steam Store).

Fetches current price and sale data for an app id, and resolves
app ids from titles through the store search.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from catalog_sync.config import PricingProviderConfig, get_settings
from catalog_sync.providers.base import (
    BaseProviderClient,
    NotFoundError,
    ValidationError,
)
from catalog_sync.providers.contracts import (
    PricingId,
    PricingRecord,
    SteamAppDetails,
    SteamSearchResponse,
)


class PricingClient(BaseProviderClient):
    """
    Client for the Steam Store API.

    Example:
        >>> async with PricingClient() as client:
        ...     pricing = await client.fetch_pricing(1091500)
        ...     print(pricing.final, pricing.currency)
    """

    def __init__(
        self,
        *,
        config: PricingProviderConfig | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize pricing client.

        Args:
            config: Provider configuration (loaded from settings if None)
            **kwargs: Arguments passed to BaseProviderClient
        """
        self._config = config or get_settings().pricing
        kwargs.setdefault("timeout", self._config.timeout_seconds)
        super().__init__(**kwargs)

    @property
    def source_name(self) -> str:
        """Return source identifier."""
        return "steam_store_api"

    async def fetch_pricing(self, pricing_provider_id: PricingId) -> PricingRecord:
        """
        Fetch the current price of an app.

        Args:
            pricing_provider_id: Steam app id

        Returns:
            PricingRecord: Price in major currency units

        Raises:
            NotFoundError: If Steam reports success=false for the app
            ValidationError: If the payload is malformed or has no price data
        """
        url = f"{self._config.store_url}/appdetails"
        raw_data = await self._get_json(
            url,
            {
                "appids": pricing_provider_id,
                "cc": self._config.country_code,
                "l": self._config.language,
            },
        )

        # Steam returns {app_id: {success: bool, data: {...}}}
        app_data = raw_data.get(str(pricing_provider_id)) if isinstance(raw_data, dict) else None
        if not isinstance(app_data, dict) or not app_data.get("success", False):
            raise NotFoundError(
                f"Steam API returned success=false for app_id={pricing_provider_id}",
                source=self.source_name,
                endpoint=url,
            )

        try:
            details = SteamAppDetails.model_validate(app_data.get("data"))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e

        pricing = details.to_pricing_record()
        if pricing is None:
            raise ValidationError(
                f"No price data for app_id={pricing_provider_id}",
                source=self.source_name,
                endpoint=url,
            )

        self._logger.info(
            "Fetched pricing",
            app_id=pricing_provider_id,
            final=pricing.final,
            is_free=pricing.is_free,
            discount_percent=pricing.discount_percent,
        )
        return pricing

    async def search_app_id(self, term: str) -> int | None:
        """
        Find the app id of the best store search hit for a title.

        Args:
            term: Title to search for

        Returns:
            The first hit's app id, or None when nothing matches
        """
        url = f"{self._config.store_url}/storesearch/"
        raw_data = await self._get_json(
            url,
            {"term": term, "l": self._config.language, "cc": self._config.country_code},
        )

        try:
            response = SteamSearchResponse.model_validate(raw_data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e

        if not response.items:
            self._logger.debug("No store search hit", term=term)
            return None
        return response.items[0].id
