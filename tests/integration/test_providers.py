"""Integration tests for provider clients with mocked HTTP responses."""

from typing import Any

import httpx
import pytest
import respx
from conftest import load_fixture

from catalog_sync.config import Settings
from catalog_sync.providers import (
    APIError,
    ExternalCatalogClient,
    MetadataClient,
    NetworkError,
    NotFoundError,
    PricingClient,
    RateLimiter,
    RateLimitError,
    ValidationError,
)

RAWG_GAMES = "https://api.rawg.io/api/games"
STEAM_APPDETAILS = "https://store.steampowered.com/api/appdetails"
STEAM_SEARCH = "https://store.steampowered.com/api/storesearch/"


@pytest.fixture
def metadata_client(fast_settings: Settings, fast_limiter: RateLimiter) -> MetadataClient:
    """Metadata client without backoff delays."""
    return MetadataClient(
        config=fast_settings.metadata,
        rate_limiter=fast_limiter,
        retry_config=fast_settings.retry,
    )


@pytest.fixture
def pricing_client(fast_settings: Settings, fast_limiter: RateLimiter) -> PricingClient:
    """Pricing client without backoff delays."""
    return PricingClient(
        config=fast_settings.pricing,
        rate_limiter=fast_limiter,
        retry_config=fast_settings.retry,
    )


class TestMetadataClient:
    """Integration tests for the metadata provider client."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_fetch_metadata(self, metadata_client: MetadataClient) -> None:
        """Test successful metadata fetch."""
        route = respx.get(f"{RAWG_GAMES}/41494").mock(
            return_value=httpx.Response(200, json=load_fixture("rawg_game_detail.json"))
        )

        async with metadata_client as client:
            record = await client.fetch_metadata(41494)

        assert record.name == "Cyberpunk 2077"
        assert record.genres == ["Action", "RPG", "Shooter"]
        assert record.pricing_provider_id == 1091500
        assert route.calls.last.request.url.params["key"] == "test_rawg_key"

    @respx.mock
    @pytest.mark.asyncio
    async def test_not_found(self, metadata_client: MetadataClient) -> None:
        """404 is not retried."""
        route = respx.get(f"{RAWG_GAMES}/999999").mock(return_value=httpx.Response(404))

        async with metadata_client as client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.fetch_metadata(999999)

        assert exc_info.value.status_code == 404
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limited_retried_then_raised(self, metadata_client: MetadataClient) -> None:
        """429 is retried up to max attempts, then surfaces."""
        route = respx.get(f"{RAWG_GAMES}/41494").mock(
            return_value=httpx.Response(429, headers={"Retry-After": "2"})
        )

        async with metadata_client as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.fetch_metadata(41494)

        assert exc_info.value.retry_after == "2"
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self, metadata_client: MetadataClient) -> None:
        """A transient 429 recovers on retry."""
        route = respx.get(f"{RAWG_GAMES}/41494").mock(
            side_effect=[
                httpx.Response(429),
                httpx.Response(200, json=load_fixture("rawg_game_detail.json")),
            ]
        )

        async with metadata_client as client:
            record = await client.fetch_metadata(41494)

        assert record.external_id == 41494
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self, metadata_client: MetadataClient) -> None:
        """Timeouts map to NetworkError after retries."""
        respx.get(f"{RAWG_GAMES}/41494").mock(side_effect=httpx.ReadTimeout("timed out"))

        async with metadata_client as client:
            with pytest.raises(NetworkError, match="timed out"):
                await client.fetch_metadata(41494)

    @respx.mock
    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, metadata_client: MetadataClient) -> None:
        """Other 4xx responses fail immediately."""
        route = respx.get(f"{RAWG_GAMES}/41494").mock(return_value=httpx.Response(401))

        async with metadata_client as client:
            with pytest.raises(APIError):
                await client.fetch_metadata(41494)

        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_by_query(self, metadata_client: MetadataClient) -> None:
        """Free-text search returns records in provider order."""
        route = respx.get(RAWG_GAMES).mock(
            return_value=httpx.Response(200, json=load_fixture("rawg_search_response.json"))
        )

        async with metadata_client as client:
            records = await client.search_by_query("cyber")

        assert [r.name for r in records] == ["Cyberpunk 2077", "Cyber Shadow", "Cyber Hook"]
        params = route.calls.last.request.url.params
        assert params["search"] == "cyber"
        assert params["page_size"] == "5"

    @respx.mock
    @pytest.mark.asyncio
    async def test_list_games_filters(self, metadata_client: MetadataClient) -> None:
        """Only given filters are sent."""
        route = respx.get(RAWG_GAMES).mock(
            return_value=httpx.Response(200, json=load_fixture("rawg_search_response.json"))
        )

        async with metadata_client as client:
            records = await client.list_games(genres="action", page=2)

        params = route.calls.last.request.url.params
        assert len(records) == 3
        assert params["genres"] == "action"
        assert params["page"] == "2"
        assert "tags" not in params

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_listing_item_skipped(self, metadata_client: MetadataClient) -> None:
        """One bad game in a page is dropped; the rest are kept."""
        payload = load_fixture("rawg_search_response.json")
        payload["results"].insert(1, {"id": 0, "name": ""})
        respx.get(RAWG_GAMES).mock(return_value=httpx.Response(200, json=payload))

        async with metadata_client as client:
            records = await client.search_by_query("cyber")

        assert [r.name for r in records] == ["Cyberpunk 2077", "Cyber Shadow", "Cyber Hook"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_listing_page(self, metadata_client: MetadataClient) -> None:
        """A page without a results array is a ValidationError."""
        respx.get(RAWG_GAMES).mock(return_value=httpx.Response(200, json={"results": "none"}))

        async with metadata_client as client:
            with pytest.raises(ValidationError):
                await client.search_by_query("cyber")

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_payload(self, metadata_client: MetadataClient) -> None:
        """Contract violations surface as ValidationError."""
        respx.get(f"{RAWG_GAMES}/41494").mock(return_value=httpx.Response(200, json={"id": 41494}))

        async with metadata_client as client:
            with pytest.raises(ValidationError):
                await client.fetch_metadata(41494)


class TestPricingClient:
    """Integration tests for the pricing provider client."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_fetch_pricing(self, pricing_client: PricingClient) -> None:
        """Test a discounted paid game."""
        route = respx.get(STEAM_APPDETAILS).mock(
            return_value=httpx.Response(200, json=load_fixture("steam_appdetails_paid.json"))
        )

        async with pricing_client as client:
            pricing = await client.fetch_pricing(1091500)

        assert pricing.final == pytest.approx(29.99)
        assert pricing.initial == pytest.approx(59.99)
        assert pricing.discount_percent == 50
        assert route.calls.last.request.url.params["cc"] == "US"

    @respx.mock
    @pytest.mark.asyncio
    async def test_free_game(self, pricing_client: PricingClient) -> None:
        """Free-to-play games are reported as free."""
        respx.get(STEAM_APPDETAILS).mock(
            return_value=httpx.Response(200, json=load_fixture("steam_appdetails_free.json"))
        )

        async with pricing_client as client:
            pricing = await client.fetch_pricing(570)

        assert pricing.is_free is True
        assert pricing.final == 0.0

    @respx.mock
    @pytest.mark.asyncio
    async def test_success_false(self, pricing_client: PricingClient) -> None:
        """Unknown apps raise NotFoundError."""
        respx.get(STEAM_APPDETAILS).mock(
            return_value=httpx.Response(200, json={"999999999": {"success": False}})
        )

        async with pricing_client as client:
            with pytest.raises(NotFoundError, match="success=false"):
                await client.fetch_pricing(999999999)

    @respx.mock
    @pytest.mark.asyncio
    async def test_server_error_retried(self, pricing_client: PricingClient) -> None:
        """5xx responses are retried as transient."""
        route = respx.get(STEAM_APPDETAILS).mock(return_value=httpx.Response(503))

        async with pricing_client as client:
            with pytest.raises(NetworkError):
                await client.fetch_pricing(1091500)

        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_app_id(self, pricing_client: PricingClient) -> None:
        """The first store search hit wins."""
        respx.get(STEAM_SEARCH).mock(
            return_value=httpx.Response(200, json=load_fixture("steam_storesearch_response.json"))
        )

        async with pricing_client as client:
            assert await client.search_app_id("Cyberpunk 2077") == 1091500

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_app_id_no_hits(self, pricing_client: PricingClient) -> None:
        """No hits means no id."""
        respx.get(STEAM_SEARCH).mock(return_value=httpx.Response(200, json={"total": 0, "items": []}))

        async with pricing_client as client:
            assert await client.search_app_id("Nothing Like This") is None


class TestExternalCatalogClient:
    """Integration tests for the combined client."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_resolve_pricing_id_falls_back_to_cleaned_title(
        self,
        fast_settings: Settings,
        fast_limiter: RateLimiter,
    ) -> None:
        """Edition noise is stripped for a second lookup."""

        def search(request: httpx.Request) -> httpx.Response:
            if request.url.params["term"] == "The Witcher 3: Wild Hunt":
                return httpx.Response(200, json={"total": 1, "items": [{"id": 292030, "name": "The Witcher 3"}]})
            return httpx.Response(200, json={"total": 0, "items": []})

        route = respx.get(STEAM_SEARCH).mock(side_effect=search)

        async with ExternalCatalogClient(settings=fast_settings, rate_limiter=fast_limiter) as client:
            app_id = await client.resolve_pricing_id("The Witcher 3: Wild Hunt GOTY Edition")

        assert app_id == 292030
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_resolve_pricing_id_failure_is_no_match(
        self,
        fast_settings: Settings,
        fast_limiter: RateLimiter,
    ) -> None:
        """Lookup errors are treated as no match."""
        respx.get(STEAM_SEARCH).mock(return_value=httpx.Response(500))

        async with ExternalCatalogClient(settings=fast_settings, rate_limiter=fast_limiter) as client:
            assert await client.resolve_pricing_id("Hades") is None

    @pytest.mark.asyncio
    async def test_providers_share_limiter(self, fast_settings: Settings) -> None:
        """Both providers wait on one process-wide bucket by default."""
        client = ExternalCatalogClient(settings=fast_settings)
        metadata: Any = client._metadata
        pricing: Any = client._pricing

        assert metadata._rate_limiter is pricing._rate_limiter
        await client.close()
