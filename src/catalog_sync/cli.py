"""
Command-line interface for the catalog synchronization engine.

Provides commands to run batch syncs, live searches and admin imports
against the configured catalog snapshot.
"""

import asyncio
import json
import signal
import sys
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from catalog_sync.config import get_settings
from catalog_sync.logger import get_logger, setup_logging

logger = get_logger(__name__, component="cli")


class CLIOutput(BaseModel):
    """Structured output for CLI commands."""

    success: bool
    command: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] | list[Any] | None = None
    error: str | None = None


def print_json(output: CLIOutput) -> None:
    """Print output as formatted JSON."""
    print(json.dumps(output.model_dump(), indent=2, default=str))


def _open_store():
    from catalog_sync.storage import JsonCatalogStore

    return JsonCatalogStore(get_settings().sync.catalog_path)


def _load_curated():
    from catalog_sync.catalog import CuratedCatalog

    return CuratedCatalog.from_path_or_default(get_settings().sync.curated_titles_path)


def _option(args: list[str], name: str) -> str | None:
    """Value following `name` in args, if present."""
    if name in args:
        idx = args.index(name)
        if idx + 1 < len(args):
            return args[idx + 1]
        raise ValueError(f"{name} requires a value")
    return None


async def cmd_test_config() -> bool:
    """Test configuration loading."""
    settings = get_settings()

    output = CLIOutput(
        success=True,
        command="test-config",
        data={
            "environment": settings.environment,
            "rawg_base_url": settings.metadata.base_url,
            "steam_store_url": settings.pricing.store_url,
            "requests_per_minute": settings.rate_limit.requests_per_minute,
            "retry_max_attempts": settings.retry.max_attempts,
            "catalog_path": str(settings.sync.catalog_path),
            "checkpoint_every": settings.sync.checkpoint_every,
            "api_key_configured": bool(settings.metadata.api_key.get_secret_value()),
        },
    )
    print_json(output)
    return True


async def cmd_normalize() -> bool:
    """Rewrite the snapshot in the current schema (no network)."""
    store = _open_store()
    entries = await store.load_snapshot()
    await store.write_snapshot(entries)

    logger.info("Catalog normalized", entries=len(entries))
    print_json(
        CLIOutput(
            success=True,
            command="normalize",
            data={"entries": len(entries), "path": str(store.path)},
        )
    )
    return True


async def cmd_sync(every_seconds: int | None = None) -> bool:
    """
    Run a batch sync pass, or repeat passes on a schedule.

    SIGINT/SIGTERM stop the run between entries after a final checkpoint.
    """
    from catalog_sync.catalog.models import SyncCheckpoint, SyncReport
    from catalog_sync.providers import ExternalCatalogClient
    from catalog_sync.sync.batch import BatchAbortedError, BatchSyncRunner, run_periodically

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still interrupts
            pass

    def on_progress(checkpoint: SyncCheckpoint) -> None:
        bar_length = 30
        filled = int(bar_length * checkpoint.percentage / 100)
        bar = "█" * filled + "░" * (bar_length - filled)
        print(
            f"\r  [{bar}] {checkpoint.percentage:.1f}% "
            f"| {checkpoint.processed}/{checkpoint.total} "
            f"| updated={checkpoint.updated} failed={checkpoint.failed}     ",
            end="",
            file=sys.stderr,
            flush=True,
        )

    def on_report(report: SyncReport) -> None:
        print_json(CLIOutput(success=True, command="sync", data=report.to_dict()))

    async with ExternalCatalogClient() as client:
        runner = BatchSyncRunner(client, _open_store(), _load_curated())
        try:
            if every_seconds is None:
                report = await runner.run(stop_event=stop_event, on_progress=on_progress)
                print(file=sys.stderr)
                on_report(report)
            else:
                await run_periodically(runner, every_seconds, stop_event, on_report=on_report)
        except BatchAbortedError as e:
            print(file=sys.stderr)
            print_json(
                CLIOutput(
                    success=False,
                    command="sync",
                    data=e.checkpoint.to_dict() if e.checkpoint else None,
                    error=str(e),
                )
            )
            return False
    return True


async def cmd_search(query: str, **filters: str | None) -> bool:
    """Search the catalog with eager discovery."""
    from catalog_sync.providers import ExternalCatalogClient
    from catalog_sync.sync.search import EagerSyncSearchService

    async with ExternalCatalogClient() as client:
        service = EagerSyncSearchService(client, _open_store())
        response = await service.search(query, **filters)

    print_json(CLIOutput(success=True, command="search", data=response.to_dict()))
    return True


async def cmd_import(external_ids: list[int]) -> bool:
    """Import provider games by id."""
    from catalog_sync.providers import ExternalCatalogClient
    from catalog_sync.sync.importer import CatalogImporter

    async with ExternalCatalogClient() as client:
        importer = CatalogImporter(client, _open_store(), _load_curated())
        report = await importer.import_many(external_ids)

    success = not report.errors
    print_json(
        CLIOutput(
            success=success,
            command="import",
            data=report.to_dict(),
            error=f"{len(report.errors)} import(s) failed" if report.errors else None,
        )
    )
    return success


async def cmd_import_listing(**filters: Any) -> bool:
    """Import one page of a provider listing."""
    from catalog_sync.providers import ExternalCatalogClient
    from catalog_sync.sync.importer import CatalogImporter

    async with ExternalCatalogClient() as client:
        importer = CatalogImporter(client, _open_store(), _load_curated())
        report = await importer.import_listing(**filters)

    print_json(CLIOutput(success=not report.errors, command="import-listing", data=report.to_dict()))
    return not report.errors


def print_usage() -> None:
    """Print CLI usage information."""
    usage = """
Catalog Sync CLI
================

Usage: catalog-sync <command> [arguments]

Commands:
  test-config                 Test configuration loading
  normalize                   Migrate the catalog snapshot to the current schema
  sync                        Run one batch enrichment pass
  search <query>              Search locally and discover new titles
  import <ids>                Import provider games (comma-separated ids)
  import-listing              Import one page of a provider listing

Options:
  --every <seconds>           sync: repeat passes on this interval
  --genre/--platform/--developer <value>
                              search: filter results
  --genres/--tags/--platforms <slugs>
                              import-listing: provider filters
  --page <n>                  import-listing: page number (default 1)

Examples:
  catalog-sync sync --every 86400
  catalog-sync search cyber --platform PC
  catalog-sync import 3498,4200
  catalog-sync import-listing --genres action --page 2
"""
    print(usage)


def main() -> None:
    """Main CLI entry point."""
    args = sys.argv[1:]
    if not args:
        print_usage()
        sys.exit(1)

    command = args[0]
    setup_logging()

    try:
        if command == "test-config":
            ok = asyncio.run(cmd_test_config())

        elif command == "normalize":
            ok = asyncio.run(cmd_normalize())

        elif command == "sync":
            every = _option(args, "--every")
            ok = asyncio.run(cmd_sync(int(every) if every else None))

        elif command == "search":
            if len(args) < 2 or args[1].startswith("--"):
                print("Error: query required")
                sys.exit(1)
            ok = asyncio.run(
                cmd_search(
                    args[1],
                    genre=_option(args, "--genre"),
                    platform=_option(args, "--platform"),
                    developer=_option(args, "--developer"),
                )
            )

        elif command == "import":
            if len(args) < 2:
                print("Error: external ids required (comma-separated)")
                sys.exit(1)
            external_ids = [int(x.strip()) for x in args[1].split(",") if x.strip()]
            ok = asyncio.run(cmd_import(external_ids))

        elif command == "import-listing":
            page = _option(args, "--page")
            ok = asyncio.run(
                cmd_import_listing(
                    page=int(page) if page else 1,
                    genres=_option(args, "--genres"),
                    tags=_option(args, "--tags"),
                    platforms=_option(args, "--platforms"),
                )
            )

        elif command in ("help", "--help", "-h"):
            print_usage()
            ok = True

        else:
            print(f"Unknown command: {command}")
            print_usage()
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception("CLI error", error=str(e))
        output = CLIOutput(
            success=False,
            command=command,
            error=str(e),
        )
        print_json(output)
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
