"""
Catalog persistence.

`CatalogStore` is the durable catalog shared by the batch runner and
the search service. The only write discipline it guarantees is an
atomic insert-or-update keyed by `normalized_key`; entries are
independent, so nothing needs multi-entry transactions.

`JsonCatalogStore` keeps the catalog as a JSON array of documents.
Every write goes to a temporary file that atomically replaces the
snapshot, so a crash mid-write never leaves a truncated catalog.
"""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from catalog_sync.catalog.models import CatalogEntry, EnrichmentStatus
from catalog_sync.catalog.titles import normalized_key
from catalog_sync.logger import get_logger
from catalog_sync.sync.reconciliation import normalize_schema


class StoreIOError(Exception):
    """Raised when the persisted catalog cannot be read or written."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)


class CatalogStore(ABC):
    """Abstract durable catalog keyed by normalized title."""

    @abstractmethod
    async def get_by_key(self, key: str) -> CatalogEntry | None:
        """Get an entry by normalized key."""
        ...

    @abstractmethod
    async def keys(self) -> set[str]:
        """All normalized keys currently persisted."""
        ...

    @abstractmethod
    async def all(self, *, include_pending: bool = True) -> list[CatalogEntry]:
        """All entries, optionally without not-yet-enriched discoveries."""
        ...

    @abstractmethod
    async def search(
        self,
        query: str,
        *,
        genre: str | None = None,
        platform: str | None = None,
        developer: str | None = None,
        limit: int = 20,
    ) -> list[CatalogEntry]:
        """
        Case-insensitive substring search over title, developer and publisher.

        Every match is ranked with `relevance_key` before the first
        `limit` are returned.
        """
        ...

    @abstractmethod
    async def upsert(self, entry: CatalogEntry) -> CatalogEntry:
        """Insert, or replace the entry with the same key (keeping its id)."""
        ...

    @abstractmethod
    async def insert_if_absent(self, entry: CatalogEntry) -> tuple[CatalogEntry, bool]:
        """
        Insert unless the key exists.

        Returns:
            The persisted entry and whether it was created
        """
        ...

    @abstractmethod
    async def load_snapshot(self) -> list[CatalogEntry]:
        """Read the whole catalog from durable storage."""
        ...

    @abstractmethod
    async def write_snapshot(self, entries: Iterable[CatalogEntry]) -> None:
        """Persist a full snapshot of the given entries."""
        ...


def matches_filters(
    entry: CatalogEntry,
    *,
    genre: str | None = None,
    platform: str | None = None,
    developer: str | None = None,
) -> bool:
    """Check an entry against optional genre, platform and developer filters."""
    if genre and not any(genre.lower() in g.lower() for g in entry.genres):
        return False
    if platform and not any(platform.lower() in p.lower() for p in entry.platforms):
        return False
    if developer and developer.lower() not in (entry.developer or "").lower():
        return False
    return True


def matches_query(entry: CatalogEntry, query: str) -> bool:
    """Case-insensitive substring match on title, developer or publisher."""
    needle = query.strip().lower()
    return any(
        needle in (value or "").lower()
        for value in (entry.title, entry.developer, entry.publisher)
    )


def relevance_key(entry: CatalogEntry, query: str) -> tuple[int, int, float]:
    """
    Sort key: exact title match first, then earlier substring
    position, then higher provider rating.
    """
    needle = query.strip().lower()
    exact = 0 if entry.normalized_key == normalized_key(query) else 1
    position = entry.title.lower().find(needle)
    if position < 0:
        position = len(entry.title) + 1000
    return exact, position, -(entry.rating or 0.0)


class JsonCatalogStore(CatalogStore):
    """
    Catalog persisted as a JSON array file.

    The catalog is held in memory after the first read; an asyncio
    lock serializes every mutation and its flush to disk. Suitable
    for a single process. A missing file is an empty catalog.

    Example:
        >>> store = JsonCatalogStore(Path("data/games.json"))
        >>> entry, created = await store.insert_if_absent(entry)
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._entries: dict[str, CatalogEntry] | None = None
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__, component="catalog_store", path=str(self._path))

    @property
    def path(self) -> Path:
        """Snapshot location."""
        return self._path

    # --- disk I/O ---

    def _read_file(self) -> dict[str, CatalogEntry]:
        if not self._path.exists():
            self._logger.info("Catalog file not found, starting empty")
            return {}

        try:
            with self._path.open(encoding="utf-8") as f:
                documents = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreIOError(
                f"Cannot read catalog: {e}", path=self._path, original_error=e
            ) from e

        if not isinstance(documents, list):
            raise StoreIOError("Catalog file must contain a JSON array", path=self._path)

        entries: dict[str, CatalogEntry] = {}
        duplicates = 0
        for index, document in enumerate(documents):
            if not isinstance(document, dict):
                raise StoreIOError(f"Catalog item {index} is not an object", path=self._path)
            try:
                entry = normalize_schema(document)
            except PydanticValidationError as e:
                raise StoreIOError(
                    f"Catalog item {index} is invalid: {e}",
                    path=self._path,
                    original_error=e,
                ) from e
            if entry.normalized_key in entries:
                duplicates += 1
                continue
            entries[entry.normalized_key] = entry

        if duplicates:
            self._logger.warning("Dropped duplicate titles on load", duplicates=duplicates)

        self._logger.debug("Loaded catalog", entries=len(entries))
        return entries

    def _write_file(self, entries: list[CatalogEntry]) -> None:
        documents: list[dict[str, Any]] = [entry.to_document() for entry in entries]
        tmp_path: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(documents, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreIOError(
                f"Cannot write catalog: {e}", path=self._path, original_error=e
            ) from e

    async def _ensure_loaded(self) -> dict[str, CatalogEntry]:
        """Load on first use. Caller must hold the lock."""
        if self._entries is None:
            self._entries = await asyncio.to_thread(self._read_file)
        return self._entries

    async def _flush(self, entries: dict[str, CatalogEntry]) -> None:
        await asyncio.to_thread(self._write_file, list(entries.values()))

    # --- reads ---

    async def get_by_key(self, key: str) -> CatalogEntry | None:
        async with self._lock:
            entries = await self._ensure_loaded()
            return entries.get(key)

    async def keys(self) -> set[str]:
        async with self._lock:
            entries = await self._ensure_loaded()
            return set(entries)

    async def all(self, *, include_pending: bool = True) -> list[CatalogEntry]:
        async with self._lock:
            entries = await self._ensure_loaded()
            return [
                entry
                for entry in entries.values()
                if include_pending or entry.enrichment_status != EnrichmentStatus.PENDING
            ]

    async def search(
        self,
        query: str,
        *,
        genre: str | None = None,
        platform: str | None = None,
        developer: str | None = None,
        limit: int = 20,
    ) -> list[CatalogEntry]:
        async with self._lock:
            entries = await self._ensure_loaded()
            results: list[CatalogEntry] = []
            for entry in entries.values():
                if not matches_query(entry, query):
                    continue
                if not matches_filters(entry, genre=genre, platform=platform, developer=developer):
                    continue
                results.append(entry)
        results.sort(key=lambda e: relevance_key(e, query))
        return results[:limit]

    # --- writes ---

    async def upsert(self, entry: CatalogEntry) -> CatalogEntry:
        async with self._lock:
            entries = await self._ensure_loaded()
            key = entry.normalized_key
            previous = entries.get(key)
            if previous is not None and previous.id != entry.id:
                entry = entry.updated(id=previous.id)

            entries[key] = entry
            try:
                await self._flush(entries)
            except StoreIOError:
                self._restore(entries, key, previous)
                raise

            self._logger.debug("Upserted entry", key=key, created=previous is None)
            return entry

    async def insert_if_absent(self, entry: CatalogEntry) -> tuple[CatalogEntry, bool]:
        async with self._lock:
            entries = await self._ensure_loaded()
            key = entry.normalized_key
            existing = entries.get(key)
            if existing is not None:
                return existing, False

            entries[key] = entry
            try:
                await self._flush(entries)
            except StoreIOError:
                self._restore(entries, key, None)
                raise

            self._logger.debug("Inserted entry", key=key, title=entry.title)
            return entry, True

    async def load_snapshot(self) -> list[CatalogEntry]:
        async with self._lock:
            self._entries = await asyncio.to_thread(self._read_file)
            return list(self._entries.values())

    async def write_snapshot(self, entries: Iterable[CatalogEntry]) -> None:
        """
        Persist a full snapshot.

        Every given entry replaces the stored one with its key. Stored
        entries missing from the snapshot (inserted since it was read)
        are kept.
        """
        async with self._lock:
            current = await self._ensure_loaded()
            merged = dict(current)
            for entry in entries:
                merged[entry.normalized_key] = entry
            await self._flush(merged)
            self._entries = merged

            self._logger.info("Wrote catalog snapshot", entries=len(merged))

    @staticmethod
    def _restore(
        entries: dict[str, CatalogEntry],
        key: str,
        previous: CatalogEntry | None,
    ) -> None:
        """Undo an in-memory change whose flush failed."""
        if previous is None:
            entries.pop(key, None)
        else:
            entries[key] = previous
