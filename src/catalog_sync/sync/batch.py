"""
Batch sync runner.

Walks the whole catalog once, sequentially, enriching entries that
need it and checkpointing the snapshot every few mutations. One
external call is in flight at a time; spacing between calls comes
from the client's shared rate limiter.
"""

import asyncio
import random
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from catalog_sync.catalog.curated import CuratedCatalog
from catalog_sync.catalog.models import (
    CatalogEntry,
    EnrichmentStatus,
    SyncCheckpoint,
    SyncReport,
)
from catalog_sync.config import get_settings
from catalog_sync.logger import get_logger
from catalog_sync.providers.base import ProviderError
from catalog_sync.providers.client import ExternalCatalogClient
from catalog_sync.storage.store import CatalogStore, StoreIOError
from catalog_sync.sync.reconciliation import (
    apply_pricing_policy,
    mark_synced,
    merge_metadata,
    needs_enrichment,
)


class RunState(str, Enum):
    """Lifecycle of a batch runner."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class EntryOutcome(str, Enum):
    """What a single entry step did."""

    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class BatchAbortedError(Exception):
    """Raised when a storage failure aborts a batch run."""

    def __init__(self, message: str, *, checkpoint: SyncCheckpoint | None = None) -> None:
        super().__init__(message)
        self.checkpoint = checkpoint


class BatchSyncRunner:
    """
    Enriches stale or incomplete catalog entries.

    Provider failures are per-entry: they are logged, counted and the
    run moves on. Failing to read the snapshot or to write a
    checkpoint aborts the run.

    Example:
        >>> runner = BatchSyncRunner(client, store, CuratedCatalog())
        >>> report = await runner.run()
        >>> print(report.updated_count, report.failed_count)
    """

    def __init__(
        self,
        client: ExternalCatalogClient,
        store: CatalogStore,
        curated: CuratedCatalog,
        *,
        checkpoint_every: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            client: Provider accessor
            store: Catalog to enrich
            curated: Curated allow-list
            checkpoint_every: Mutations between snapshot writes (settings if None)
            rng: Random source for synthetic curated prices
        """
        self._client = client
        self._store = store
        self._curated = curated
        self._checkpoint_every = checkpoint_every or get_settings().sync.checkpoint_every
        self._rng = rng or random.Random()
        self._state = RunState.IDLE
        self._logger = get_logger(__name__, component="batch_sync")

    @property
    def state(self) -> RunState:
        """Current lifecycle state."""
        return self._state

    async def run(
        self,
        *,
        stop_event: asyncio.Event | None = None,
        on_progress: Callable[[SyncCheckpoint], None] | None = None,
    ) -> SyncReport:
        """
        Run one pass over the catalog.

        Args:
            stop_event: Checked between entries; when set the run stops
                after writing a final checkpoint
            on_progress: Called with live counters after each entry

        Returns:
            SyncReport: Counts of updated, skipped and failed entries

        Raises:
            BatchAbortedError: If the snapshot cannot be read or written
        """
        if self._state == RunState.RUNNING:
            raise RuntimeError("Batch sync is already running")

        self._state = RunState.RUNNING
        started_at = datetime.now(timezone.utc)

        try:
            entries = await self._store.load_snapshot()
        except StoreIOError as e:
            self._abort("Cannot read catalog snapshot", e)
            raise BatchAbortedError(f"Cannot read catalog snapshot: {e}") from e

        checkpoint = SyncCheckpoint(total=len(entries), started_at=started_at)
        errors: list[dict[str, Any]] = []
        unsaved = 0
        checkpoints_written = 0
        stopped_early = False

        self._logger.info(
            "Starting batch sync",
            total_entries=len(entries),
            checkpoint_every=self._checkpoint_every,
        )

        try:
            for index, entry in enumerate(entries):
                if stop_event is not None and stop_event.is_set():
                    stopped_early = True
                    self._logger.warning(
                        "Stop requested, ending run",
                        processed=checkpoint.processed,
                        total=checkpoint.total,
                    )
                    break

                checkpoint.current_title = entry.title
                outcome, synced, entry_errors = await self._sync_entry(entry)
                errors.extend(entry_errors)

                # Partially enriched entries are stored even when counted as failed
                if synced is not entry:
                    entries[index] = synced
                    unsaved += 1

                if outcome == EntryOutcome.UPDATED:
                    checkpoint.updated += 1
                elif outcome == EntryOutcome.FAILED:
                    checkpoint.failed += 1
                else:
                    checkpoint.skipped += 1
                checkpoint.processed += 1

                if on_progress:
                    on_progress(checkpoint)

                if unsaved >= self._checkpoint_every:
                    await self._write_checkpoint(entries, checkpoint)
                    checkpoints_written += 1
                    unsaved = 0

            if unsaved:
                await self._write_checkpoint(entries, checkpoint)
                checkpoints_written += 1

        except StoreIOError as e:
            self._abort("Cannot write checkpoint", e, checkpoint)
            raise BatchAbortedError(
                f"Cannot write checkpoint: {e}", checkpoint=checkpoint
            ) from e
        except Exception as e:
            self._abort("Unexpected error", e, checkpoint)
            raise

        self._state = RunState.COMPLETED
        report = SyncReport(
            updated_count=checkpoint.updated,
            skipped_count=checkpoint.skipped + (checkpoint.total - checkpoint.processed),
            failed_count=checkpoint.failed,
            checkpoints_written=checkpoints_written,
            stopped_early=stopped_early,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            errors=errors,
        )

        self._logger.info(
            "Batch sync complete",
            updated=report.updated_count,
            skipped=report.skipped_count,
            failed=report.failed_count,
            checkpoints=checkpoints_written,
            stopped_early=stopped_early,
            duration_seconds=round(report.duration_seconds, 2),
        )
        return report

    async def _sync_entry(
        self,
        entry: CatalogEntry,
    ) -> tuple[EntryOutcome, CatalogEntry, list[dict[str, Any]]]:
        """
        Fetch, reconcile and mark one entry.

        Returns the outcome, the entry to keep (the input itself when
        nothing changed) and the provider errors met. Any failed fetch
        makes the outcome FAILED, but whatever did succeed is still
        merged and marked partial.
        """
        if not needs_enrichment(entry, self._curated):
            return EntryOutcome.SKIPPED, entry, []

        is_curated = self._curated.is_curated(entry.title)
        result = entry
        attempted = 0
        succeeded = 0
        errors: list[dict[str, Any]] = []

        if entry.external_id is not None:
            attempted += 1
            try:
                record = await self._client.fetch_metadata(entry.external_id)
            except ProviderError as e:
                errors.append(self._record_error(entry, "metadata", e))
            else:
                result = merge_metadata(result, record)
                succeeded += 1

        # Curated titles are priced locally and never re-queried
        if is_curated:
            result = apply_pricing_policy(result, None, True, rng=self._rng)
        elif result.pricing_provider_id is not None:
            attempted += 1
            try:
                pricing = await self._client.fetch_pricing(result.pricing_provider_id)
            except ProviderError as e:
                errors.append(self._record_error(entry, "pricing", e))
            else:
                result = apply_pricing_policy(result, pricing, False)
                succeeded += 1

        unchanged = EntryOutcome.FAILED if errors else EntryOutcome.SKIPPED

        if succeeded == 0 and result is entry:
            if attempted == 0:
                self._logger.debug("Nothing to enrich", title=entry.title)
            return unchanged, entry, errors

        status = EnrichmentStatus.PARTIAL if errors else EnrichmentStatus.COMPLETE
        synced = mark_synced(result, status)
        if synced.content_equals(entry):
            return unchanged, entry, errors

        self._logger.info(
            "Entry enriched",
            title=entry.title,
            status=status.value,
            platforms=len(synced.platforms),
            genres=synced.genres,
            price=synced.price,
        )
        return (EntryOutcome.FAILED if errors else EntryOutcome.UPDATED), synced, errors

    def _record_error(self, entry: CatalogEntry, stage: str, error: ProviderError) -> dict[str, Any]:
        self._logger.warning(
            "Provider fetch failed",
            title=entry.title,
            stage=stage,
            error_type=type(error).__name__,
            status_code=error.status_code,
            error=str(error),
        )
        return {
            "title": entry.title,
            "stage": stage,
            "error_type": type(error).__name__,
            "error": str(error),
        }

    async def _write_checkpoint(self, entries: list[CatalogEntry], checkpoint: SyncCheckpoint) -> None:
        await self._store.write_snapshot(entries)
        self._logger.info(
            "Checkpoint written",
            processed=checkpoint.processed,
            total=checkpoint.total,
            updated=checkpoint.updated,
            failed=checkpoint.failed,
        )

    def _abort(
        self,
        message: str,
        error: Exception,
        checkpoint: SyncCheckpoint | None = None,
    ) -> None:
        self._state = RunState.ABORTED
        self._logger.error(
            "Batch sync aborted",
            reason=message,
            error=str(error),
            processed=checkpoint.processed if checkpoint else 0,
        )


async def run_periodically(
    runner: BatchSyncRunner,
    interval_seconds: float,
    stop_event: asyncio.Event,
    *,
    on_report: Callable[[SyncReport], None] | None = None,
) -> list[SyncReport]:
    """
    Repeat batch passes until `stop_event` is set.

    Storage aborts propagate and end the schedule.

    Returns:
        list[SyncReport]: One report per completed pass
    """
    logger = get_logger(__name__, component="batch_schedule")
    reports: list[SyncReport] = []

    while not stop_event.is_set():
        report = await runner.run(stop_event=stop_event)
        reports.append(report)
        if on_report:
            on_report(report)

        logger.info("Next pass scheduled", in_seconds=interval_seconds, passes=len(reports))
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    return reports
