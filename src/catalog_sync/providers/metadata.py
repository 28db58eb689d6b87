"""
Metadata provider client (RAWG).

Fetches genres, platforms and descriptive metadata for a game, and
runs free-text and tag searches over the provider's catalog.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from catalog_sync.config import MetadataProviderConfig, get_settings
from catalog_sync.providers.base import BaseProviderClient, ValidationError
from catalog_sync.providers.contracts import (
    ExternalId,
    ExternalRecord,
    RawgGame,
    RawgSearchResponse,
)


class MetadataClient(BaseProviderClient):
    """
    Client for the RAWG games API.

    Example:
        >>> async with MetadataClient() as client:
        ...     record = await client.fetch_metadata(3328)
        ...     print(record.genres)
    """

    def __init__(
        self,
        *,
        config: MetadataProviderConfig | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize metadata client.

        Args:
            config: Provider configuration (loaded from settings if None)
            **kwargs: Arguments passed to BaseProviderClient
        """
        self._config = config or get_settings().metadata
        kwargs.setdefault("timeout", self._config.timeout_seconds)
        super().__init__(**kwargs)

    @property
    def source_name(self) -> str:
        """Return source identifier."""
        return "rawg_api"

    def _params(self, **extra: Any) -> dict[str, Any]:
        """Query parameters with the API key and without empty values."""
        params = {"key": self._config.api_key.get_secret_value()}
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def _parse_game(self, raw_data: Any, endpoint: str) -> RawgGame:
        try:
            return RawgGame.model_validate(raw_data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
                endpoint=endpoint,
                original_error=e,
            ) from e

    def _parse_listing(self, raw_data: Any, endpoint: str) -> list[ExternalRecord]:
        try:
            listing = RawgSearchResponse.model_validate(raw_data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
                endpoint=endpoint,
                original_error=e,
            ) from e

        records: list[ExternalRecord] = []
        for item in listing.results:
            try:
                records.append(RawgGame.model_validate(item).to_external_record())
            except PydanticValidationError as e:
                self._logger.warning(
                    "Skipping malformed listing item",
                    endpoint=endpoint,
                    item_id=item.get("id"),
                    error=str(e),
                )
        return records

    async def fetch_metadata(self, external_id: ExternalId) -> ExternalRecord:
        """
        Fetch a game's details.

        Args:
            external_id: RAWG game id

        Returns:
            ExternalRecord: Metadata with at most three genres

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If the payload does not match the contract
        """
        url = f"{self._config.base_url}/games/{external_id}"
        raw_data = await self._get_json(url, self._params())
        game = self._parse_game(raw_data, url)
        record = game.to_external_record()

        self._logger.info(
            "Fetched metadata",
            external_id=external_id,
            game_name=record.name,
            genres=record.genres,
            platforms=len(record.platforms),
        )
        return record

    async def search_by_query(self, text: str, *, limit: int | None = None) -> list[ExternalRecord]:
        """
        Free-text search over the provider catalog.

        Args:
            text: Search text
            limit: Page size (configured default if None)

        Returns:
            list[ExternalRecord]: Matches in provider order
        """
        url = f"{self._config.base_url}/games"
        raw_data = await self._get_json(
            url,
            self._params(search=text, page_size=limit or self._config.search_page_size),
        )
        records = self._parse_listing(raw_data, url)

        self._logger.info("Searched metadata provider", query=text, results=len(records))
        return records

    async def list_games(
        self,
        *,
        page: int = 1,
        page_size: int = 40,
        genres: str | None = None,
        tags: str | None = None,
        platforms: str | None = None,
        ordering: str = "-added",
    ) -> list[ExternalRecord]:
        """
        List games filtered by genre, tag or platform.

        Args:
            page: 1-based page number
            page_size: Results per page
            genres: Provider genre slug(s), comma-separated
            tags: Provider tag slug(s), comma-separated
            platforms: Provider platform id(s), comma-separated
            ordering: Provider ordering key (popularity by default)

        Returns:
            list[ExternalRecord]: One page of results
        """
        url = f"{self._config.base_url}/games"
        raw_data = await self._get_json(
            url,
            self._params(
                page=page,
                page_size=page_size,
                genres=genres,
                tags=tags,
                platforms=platforms,
                ordering=ordering,
            ),
        )
        records = self._parse_listing(raw_data, url)

        self._logger.info(
            "Listed provider games",
            page=page,
            genres=genres,
            tags=tags,
            results=len(records),
        )
        return records
