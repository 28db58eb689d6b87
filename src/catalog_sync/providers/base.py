"""
Base provider client with retry logic, rate limiting, and error handling.

Every outbound call goes through `_get_json`: it waits for the shared
rate limiter, applies a bounded timeout, maps HTTP failures onto the
provider error taxonomy and retries transient ones with exponential
backoff plus jitter.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from catalog_sync.config import RetryConfig, get_settings
from catalog_sync.logger import get_logger
from catalog_sync.providers.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    get_rate_limiter,
)


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.endpoint = endpoint
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)


class NotFoundError(ProviderError):
    """Raised when the provider does not know the requested id."""

    pass


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, *, retry_after: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class NetworkError(ProviderError):
    """Raised on transport failures, timeouts and 5xx responses."""

    pass


class APIError(ProviderError):
    """Raised when API returns a non-retryable error response."""

    pass


class ValidationError(ProviderError):
    """Raised when a response is malformed or carries no usable data."""

    pass


class BaseProviderClient(ABC):
    """
    Abstract base class for provider clients.

    Provides common functionality including:
    - HTTP client management with a bounded timeout
    - Shared rate limiting
    - Retry logic with exponential backoff and jitter
    - Structured logging

    Subclasses must implement:
    - source_name: Identifier for the provider
    """

    def __init__(
        self,
        *,
        rate_limiter: RateLimiter | None = None,
        retry_config: RetryConfig | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            rate_limiter: Limiter to wait on (process-wide limiter if None)
            retry_config: Custom retry configuration (uses settings if None)
            timeout: HTTP request timeout in seconds
        """
        if rate_limiter is None:
            rate_limiter = get_rate_limiter(
                "providers",
                RateLimiterConfig.from_settings(get_settings().rate_limit),
            )
        self._rate_limiter = rate_limiter
        self._retry_config = retry_config or get_settings().retry
        self._timeout = timeout or 30.0
        self._logger = get_logger(
            self.__class__.__name__,
            component="provider",
            source=self.source_name,
        )
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return identifier for this provider."""
        ...

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={
                    "User-Agent": "CatalogSync/1.0",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseProviderClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    def _create_retry_decorator(self) -> Any:
        """Create retry decorator with current configuration."""
        return retry(
            retry=retry_if_exception_type((RateLimitError, NetworkError)),
            stop=stop_after_attempt(self._retry_config.max_attempts),
            wait=wait_exponential_jitter(
                initial=self._retry_config.base_delay_seconds,
                max=self._retry_config.max_delay_seconds,
                exp_base=self._retry_config.exponential_base,
                jitter=self._retry_config.jitter_seconds,
            ),
            before_sleep=self._log_retry_attempt,
            reraise=True,
        )

    def _log_retry_attempt(self, retry_state: Any) -> None:
        """Log retry attempts for observability."""
        self._logger.warning(
            "Retrying request",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET a JSON document with rate limiting and retries.

        Args:
            url: Request URL
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            NotFoundError: On 404
            RateLimitError: If still throttled after all attempts
            NetworkError: If transport keeps failing after all attempts
            APIError: On other 4xx responses
            ValidationError: If the body is not JSON
        """
        retry_decorator = self._create_retry_decorator()

        @retry_decorator
        async def _request() -> httpx.Response:
            await self._rate_limiter.acquire()
            self._logger.debug("Making request", url=url)

            try:
                response = await self.client.get(url, params=params)
            except httpx.TimeoutException as e:
                raise NetworkError(
                    f"Request timed out after {self._timeout}s",
                    source=self.source_name,
                    endpoint=url,
                    original_error=e,
                ) from e
            except httpx.TransportError as e:
                raise NetworkError(
                    f"Transport error: {e}",
                    source=self.source_name,
                    endpoint=url,
                    original_error=e,
                ) from e

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(
                    f"Rate limit exceeded. Retry after {retry_after or '?'}s",
                    retry_after=retry_after,
                    source=self.source_name,
                    endpoint=url,
                    status_code=429,
                )

            if response.status_code == 404:
                raise NotFoundError(
                    "Resource not found",
                    source=self.source_name,
                    endpoint=url,
                    status_code=404,
                )

            if response.status_code >= 500:
                raise NetworkError(
                    f"Server error: {response.status_code}",
                    source=self.source_name,
                    endpoint=url,
                    status_code=response.status_code,
                )

            if response.status_code >= 400:
                raise APIError(
                    f"API error: {response.status_code}",
                    source=self.source_name,
                    endpoint=url,
                    status_code=response.status_code,
                )

            return response

        try:
            response = await _request()
        except (RateLimitError, NetworkError) as e:
            self._logger.error(
                "Request failed after retries",
                url=url,
                attempts=self._retry_config.max_attempts,
                error=str(e),
            )
            raise

        try:
            return response.json()
        except ValueError as e:
            raise ValidationError(
                "Response is not valid JSON",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e
