"""Shared fixtures: environment, fast provider settings and a fake provider client."""

import asyncio
import json
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any, cast
from unittest.mock import patch

import pytest

from catalog_sync.config import RateLimitConfig, RetryConfig, Settings, get_settings
from catalog_sync.providers.base import NotFoundError
from catalog_sync.providers.contracts import ExternalRecord, PricingRecord
from catalog_sync.providers.rate_limiter import RateLimiter, RateLimiterConfig, _manager

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict[str, Any]:
    """Load a JSON fixture file."""
    with (FIXTURES_DIR / name).open(encoding="utf-8") as f:
        return cast(dict[str, Any], json.load(f))


@pytest.fixture(autouse=True)
def mock_env() -> Iterator[None]:
    """Mock environment variables and reset cached settings and limiters."""
    with patch.dict(os.environ, {"RAWG_API_KEY": "test_rawg_key"}):
        get_settings.cache_clear()
        _manager.clear()
        yield
    get_settings.cache_clear()
    _manager.clear()


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with no retry backoff and a generous rate limit."""
    return Settings(
        retry=RetryConfig(
            max_attempts=3,
            base_delay_seconds=0.0,
            max_delay_seconds=0.0,
            jitter_seconds=0.0,
        ),
        rate_limit=RateLimitConfig(requests_per_minute=6000, burst_size=50),
    )


@pytest.fixture
def fast_limiter() -> RateLimiter:
    """Rate limiter that never makes tests wait."""
    return RateLimiter(RateLimiterConfig(requests_per_minute=6000, burst_size=50))


def make_record(name: str, external_id: int, **fields: Any) -> ExternalRecord:
    """Build a provider record with sensible classification defaults."""
    fields.setdefault("platforms", ["PC"])
    fields.setdefault("genres", ["Action"])
    return ExternalRecord(external_id=external_id, name=name, **fields)


def make_pricing(app_id: int, final: float, initial: float | None = None, **fields: Any) -> PricingRecord:
    """Build a pricing record."""
    initial = final if initial is None else initial
    discount = round((1 - final / initial) * 100) if initial > final else 0
    fields.setdefault("discount_percent", discount)
    return PricingRecord(pricing_provider_id=app_id, final=final, initial=initial, **fields)


class FakeCatalogClient:
    """
    In-memory stand-in for ExternalCatalogClient.

    Values in the lookup tables may be exceptions, which are raised
    instead of returned.
    """

    def __init__(
        self,
        *,
        metadata: dict[int, Any] | None = None,
        pricing: dict[int, Any] | None = None,
        search_results: Any = None,
        pricing_ids: dict[str, int] | None = None,
        listing: list[ExternalRecord] | None = None,
    ) -> None:
        self.metadata = metadata or {}
        self.pricing = pricing or {}
        self.search_results = search_results if search_results is not None else []
        self.pricing_ids = pricing_ids or {}
        self.listing = listing or []
        self.calls: list[tuple[str, Any]] = []

    async def fetch_metadata(self, external_id: int) -> ExternalRecord:
        self.calls.append(("fetch_metadata", external_id))
        await asyncio.sleep(0)
        value = self.metadata.get(external_id)
        if value is None:
            raise NotFoundError("Resource not found", source="fake", status_code=404)
        if isinstance(value, Exception):
            raise value
        return cast(ExternalRecord, value)

    async def fetch_pricing(self, pricing_provider_id: int) -> PricingRecord:
        self.calls.append(("fetch_pricing", pricing_provider_id))
        await asyncio.sleep(0)
        value = self.pricing.get(pricing_provider_id)
        if value is None:
            raise NotFoundError("Resource not found", source="fake", status_code=404)
        if isinstance(value, Exception):
            raise value
        return cast(PricingRecord, value)

    async def search_by_query(self, text: str, *, limit: int | None = None) -> list[ExternalRecord]:
        self.calls.append(("search_by_query", text))
        await asyncio.sleep(0)
        if isinstance(self.search_results, Exception):
            raise self.search_results
        return list(self.search_results)

    async def list_games(self, **filters: Any) -> list[ExternalRecord]:
        self.calls.append(("list_games", filters))
        return list(self.listing)

    async def resolve_pricing_id(self, title: str) -> int | None:
        self.calls.append(("resolve_pricing_id", title))
        return self.pricing_ids.get(title)

    def count(self, method: str) -> int:
        """Number of calls made to a method."""
        return sum(1 for name, _ in self.calls if name == method)

    async def close(self) -> None:
        pass
