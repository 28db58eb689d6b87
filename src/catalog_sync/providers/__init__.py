"""
Provider clients.

HTTP accessors for the metadata and pricing providers, built on a
common base with shared rate limiting, retries and a bounded timeout.
"""

from catalog_sync.providers.base import (
    APIError,
    BaseProviderClient,
    NetworkError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    ValidationError,
)
from catalog_sync.providers.client import ExternalCatalogClient
from catalog_sync.providers.contracts import ExternalRecord, PricingRecord
from catalog_sync.providers.metadata import MetadataClient
from catalog_sync.providers.pricing import PricingClient
from catalog_sync.providers.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    RateLimiterManager,
    get_rate_limiter,
)

__all__ = [
    # Errors
    "APIError",
    "NetworkError",
    "NotFoundError",
    "ProviderError",
    "RateLimitError",
    "ValidationError",
    # Clients
    "BaseProviderClient",
    "ExternalCatalogClient",
    "MetadataClient",
    "PricingClient",
    # Records
    "ExternalRecord",
    "PricingRecord",
    # Rate limiting
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimiterManager",
    "get_rate_limiter",
]
