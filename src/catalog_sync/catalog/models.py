"""
Catalog data model.

`CatalogEntry` is the canonical persisted record for one game. It is
stored as a camelCase JSON document; Python code uses the snake_case
field names.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from catalog_sync.catalog.titles import normalized_key


class EnrichmentStatus(str, Enum):
    """How far provider data has been merged into an entry."""

    PENDING = "pending"  # Discovered by eager sync, nothing merged yet
    PARTIAL = "partial"  # Some provider fetches succeeded
    COMPLETE = "complete"


class CatalogEntry(BaseModel):
    """
    A game in the local catalog.

    `normalized_key` is always derived from `title` and must be
    unique across the store.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # Identity
    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str = Field(..., min_length=1)
    normalized_key: str = ""

    # Provider links
    external_id: int | None = Field(default=None, gt=0, description="Metadata provider id")
    pricing_provider_id: int | None = Field(default=None, gt=0, description="Pricing provider id")

    # Classification
    platforms: list[str] = Field(default_factory=list)
    genres: list[str] = Field(default_factory=list)
    developer: str | None = None
    publisher: str | None = None

    # Presentation
    image: str | None = None
    description: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    metacritic: int | None = Field(default=None, ge=0, le=100)

    # Pricing
    price: float = Field(default=0.0, ge=0)
    original_price: float = Field(default=0.0, ge=0)
    currency: str = "USD"
    on_sale: bool = False
    discount_percent: int = Field(default=0, ge=0, le=100)

    # Sync state
    release_date: datetime | None = None
    is_external: bool = False
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    last_synced_at: datetime | None = None

    @model_validator(mode="after")
    def enforce_invariants(self) -> "CatalogEntry":
        """Derive the key and keep sale flags consistent with prices."""
        self.normalized_key = normalized_key(self.title)
        if self.on_sale and self.original_price <= self.price:
            self.on_sale = False
            self.discount_percent = 0
        return self

    @property
    def has_price(self) -> bool:
        """Whether a non-zero price is set."""
        return self.price > 0

    def updated(self, **changes: Any) -> "CatalogEntry":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return CatalogEntry.model_validate(data)

    def content_equals(self, other: "CatalogEntry") -> bool:
        """Compare everything except the sync timestamp."""
        exclude = {"last_synced_at"}
        return self.model_dump(exclude=exclude) == other.model_dump(exclude=exclude)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted camelCase document."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class SyncCheckpoint:
    """Live counters of a batch run."""

    total: int
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    current_title: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def percentage(self) -> float:
        """Get completion percentage."""
        if self.total == 0:
            return 100.0
        return (self.processed / self.total) * 100

    @property
    def elapsed_seconds(self) -> float:
        """Get elapsed time in seconds."""
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "total": self.total,
            "processed": self.processed,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "current_title": self.current_title,
            "percentage": round(self.percentage, 1),
        }


@dataclass
class SyncReport:
    """Terminal report of a batch run."""

    updated_count: int
    skipped_count: int
    failed_count: int
    checkpoints_written: int
    stopped_early: bool
    started_at: datetime
    completed_at: datetime
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "checkpoints_written": self.checkpoints_written,
            "stopped_early": self.stopped_early,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 2),
            "errors": self.errors,
        }
