"""
Data contracts for provider responses.

Pydantic models for the raw metadata (RAWG) and pricing (Steam Store)
payloads, and the provider-neutral records the rest of the package
works with.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

MAX_GENRES = 3

_STEAM_APP_URL = re.compile(r"/app/(\d+)")

ExternalId = Annotated[int, Field(gt=0, description="Metadata provider game id")]
PricingId = Annotated[int, Field(gt=0, description="Pricing provider app id")]


# --- Metadata provider (RAWG) ---


class RawgNamed(BaseModel):
    """Any `{name}` object (genre, developer, publisher)."""

    name: str


class RawgPlatformName(BaseModel):
    """Inner platform object."""

    name: str


class RawgPlatform(BaseModel):
    """Platform wrapper: `{platform: {name}}`."""

    platform: RawgPlatformName


class RawgStoreName(BaseModel):
    """Inner store object."""

    name: str


class RawgStore(BaseModel):
    """Store link: `{store: {name}, url}`."""

    store: RawgStoreName
    url: str = ""


class RawgGame(BaseModel):
    """
    Game as returned by `/games/{id}` and inside `/games` results.

    List results omit the detail-only fields, hence the defaults.
    """

    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1)
    genres: list[RawgNamed] | None = Field(default=None)
    platforms: list[RawgPlatform] | None = Field(default=None)
    developers: list[RawgNamed] | None = Field(default=None)
    publishers: list[RawgNamed] | None = Field(default=None)
    stores: list[RawgStore] | None = Field(default=None)
    released: date | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    metacritic: int | None = Field(default=None, ge=0, le=100)
    background_image: str | None = None
    description_raw: str | None = None

    @field_validator("released", mode="before")
    @classmethod
    def blank_release_is_none(cls, v: object) -> object:
        """RAWG sends an empty string for unknown release dates."""
        if v == "":
            return None
        return v

    @property
    def genre_names(self) -> list[str]:
        """Genre names in provider order."""
        return [g.name for g in self.genres or []]

    @property
    def platform_names(self) -> list[str]:
        """Platform names in provider order."""
        return [p.platform.name for p in self.platforms or []]

    @property
    def steam_app_id(self) -> int | None:
        """App id parsed from a linked Steam store URL, if any."""
        for store in self.stores or []:
            if "steam" not in store.store.name.lower():
                continue
            match = _STEAM_APP_URL.search(store.url)
            if match:
                return int(match.group(1))
        return None

    def to_external_record(self) -> "ExternalRecord":
        """Convert to the provider-neutral record."""
        return ExternalRecord(
            external_id=self.id,
            name=self.name,
            platforms=self.platform_names,
            genres=self.genre_names,
            developer=self.developers[0].name if self.developers else None,
            publisher=self.publishers[0].name if self.publishers else None,
            released=self.released,
            rating=self.rating,
            metacritic=self.metacritic,
            image=self.background_image,
            description=self.description_raw,
            pricing_provider_id=self.steam_app_id,
        )


class RawgSearchResponse(BaseModel):
    """
    Paginated `/games` response.

    Items are kept raw and validated one by one with `RawgGame`.
    """

    count: int = 0
    results: list[dict[str, Any]] = Field(default_factory=list)


# --- Pricing provider (Steam Store) ---


class PriceOverview(BaseModel):
    """Price information for a game."""

    currency: str = Field(..., description="Currency code (e.g., USD, EUR)")
    initial: int = Field(..., ge=0, description="Initial price in cents")
    final: int = Field(..., ge=0, description="Final price in cents (after discount)")
    discount_percent: int = Field(..., ge=0, le=100, description="Discount percentage")

    @property
    def initial_dollars(self) -> Decimal:
        """Convert initial price from cents to dollars."""
        return Decimal(self.initial) / 100

    @property
    def final_dollars(self) -> Decimal:
        """Convert final price from cents to dollars."""
        return Decimal(self.final) / 100


class SteamAppDetails(BaseModel):
    """
    The `data` object of an `/appdetails` response.

    `price_overview` is absent for free games and for unreleased or
    delisted ones.
    """

    steam_appid: int = Field(..., gt=0)
    name: str = ""
    is_free: bool = False
    price_overview: PriceOverview | None = None

    def to_pricing_record(self) -> "PricingRecord | None":
        """Convert to a pricing record, or None when no price data is present."""
        if self.is_free:
            return PricingRecord(
                pricing_provider_id=self.steam_appid,
                final=0.0,
                initial=0.0,
                currency="USD",
                discount_percent=0,
                is_free=True,
            )
        if self.price_overview is None:
            return None
        overview = self.price_overview
        return PricingRecord(
            pricing_provider_id=self.steam_appid,
            final=float(overview.final_dollars),
            initial=float(overview.initial_dollars),
            currency=overview.currency,
            discount_percent=overview.discount_percent,
            is_free=False,
        )


class SteamSearchItem(BaseModel):
    """One `/storesearch` hit."""

    id: int = Field(..., gt=0)
    name: str
    type: str = "app"


class SteamSearchResponse(BaseModel):
    """`/storesearch` response."""

    total: int = 0
    items: list[SteamSearchItem] = Field(default_factory=list)


# --- Provider-neutral records ---


class PricingRecord(BaseModel):
    """Current price of a game at the pricing provider, in major units."""

    pricing_provider_id: PricingId
    final: float = Field(..., ge=0)
    initial: float = Field(..., ge=0)
    currency: str = "USD"
    discount_percent: int = Field(default=0, ge=0, le=100)
    is_free: bool = False


class ExternalRecord(BaseModel):
    """A game as described by the metadata provider."""

    external_id: ExternalId
    name: str = Field(..., min_length=1)
    platforms: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    developer: str | None = None
    publisher: str | None = None
    released: date | None = None
    rating: float | None = None
    metacritic: int | None = None
    image: str | None = None
    description: str | None = None
    pricing_provider_id: int | None = None
    pricing: PricingRecord | None = None

    @field_validator("genres")
    @classmethod
    def keep_top_genres(cls, v: list[str]) -> list[str]:
        """Only the first three genres are kept."""
        return v[:MAX_GENRES]
