"""
Places Sync - CLI Entry Point.

Command-line interface for searching businesses through the synchronization
layer, inspecting single records, and keeping the local store fresh.

Usage:
    # Search and enrich results
    python -m places_sync.main search plumbers "Denver, CO"

    # Machine-readable output, bypassing fresh cache entries
    python -m places_sync.main search plumbers "Denver, CO" --json --force-refresh

    # Single record lookup
    python -m places_sync.main record ChIJN1t_tDeuEmsRUsoyG83frY4

    # Refresh stale records once, or on a schedule
    python -m places_sync.main refresh-stale --limit 100
    python -m places_sync.main schedule --interval 30

    # Store statistics
    python -m places_sync.main stats

Exit codes:
    0 success, 1 configuration or internal error, 2 bad request,
    3 record unavailable, 4 upstream provider error
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime
from typing import Any, Callable, NoReturn, Optional

from places_sync.config import AppConfig, SchedulerConfig, StorageConfig, SyncSettings
from places_sync.normalizer.schemas import BusinessRecord, SearchQuery, SearchResponse
from places_sync.orchestrator.pipeline import PlacesSyncPipeline
from places_sync.orchestrator.scheduler import RefreshScheduler
from places_sync.storage.record_store import SQLiteRecordStore
from places_sync.utils.exceptions import (
    APIError,
    BadRequestError,
    ConfigurationError,
    PlacesSyncError,
    RecordUnavailableError,
    UpstreamExhaustionError,
    UpstreamResponseError,
)
from places_sync.utils.logger import setup_logger

logger = logging.getLogger("places_sync.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BAD_REQUEST = 2
EXIT_UNAVAILABLE = 3
EXIT_UPSTREAM = 4


def exit_code_for(error: BaseException) -> int:
    """Map an error to the process exit code."""
    if isinstance(error, BadRequestError):
        return EXIT_BAD_REQUEST
    if isinstance(error, RecordUnavailableError):
        return EXIT_UNAVAILABLE
    if isinstance(error, (UpstreamResponseError, UpstreamExhaustionError, APIError)):
        return EXIT_UPSTREAM
    return EXIT_ERROR


class PlacesSyncCLI:
    """
    Command-line interface for Places Sync.

    Features:
        - Keyword + location search with detail enrichment
        - Single record lookup (cache-or-refresh)
        - One-shot and scheduled stale record refresh
        - Store statistics
        - Graceful shutdown of the scheduler on SIGINT/SIGTERM
    """

    def __init__(self, pipeline_factory: Optional[Callable[[SyncSettings], Any]] = None):
        """
        Initialize CLI with argument parser.

        Args:
            pipeline_factory: Builds the pipeline from settings (tests inject fakes)
        """
        self.parser = self._create_parser()
        self.pipeline_factory = pipeline_factory or PlacesSyncPipeline
        self.args: Optional[argparse.Namespace] = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create and configure argument parser.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="places-sync",
            description=(
                "Business listing synchronization: search the places provider "
                "and keep a local store of enriched records fresh."
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  python -m places_sync.main search plumbers "Denver, CO"
  python -m places_sync.main record ChIJN1t_tDeuEmsRUsoyG83frY4
  python -m places_sync.main refresh-stale --limit 100
  python -m places_sync.main schedule --interval 30
  python -m places_sync.main stats

Configuration:
  Set environment variables in .env file:
    - GOOGLE_PLACES_API_KEY: Places API key (required)
    - PLACES_API_VERSION: v1 or legacy (default: v1)
    - STALENESS_THRESHOLD_HOURS: Record freshness window (default: 24)
            """,
        )

        parser.add_argument(
            "--log-level",
            type=str,
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Override default log level",
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {AppConfig.VERSION}",
        )

        subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

        search = subparsers.add_parser("search", help="Search businesses and enrich results")
        search.add_argument("keyword", help="What to search for (e.g. plumbers)")
        search.add_argument("location", help="Where to search (e.g. 'Denver, CO')")
        search.add_argument(
            "--force-refresh",
            action="store_true",
            help="Re-fetch details even for fresh cached records",
        )
        search.add_argument("--json", action="store_true", help="Print the raw JSON response")

        record = subparsers.add_parser("record", help="Show one record, refreshing it if stale")
        record.add_argument("place_id", help="Provider place identifier")
        record.add_argument(
            "--force-refresh",
            action="store_true",
            help="Re-fetch details even if the cached record is fresh",
        )

        refresh = subparsers.add_parser("refresh-stale", help="Refresh stale records once")
        refresh.add_argument(
            "--limit",
            type=int,
            default=SchedulerConfig.REFRESH_BATCH_SIZE,
            metavar="N",
            help=f"Maximum records to refresh (default: {SchedulerConfig.REFRESH_BATCH_SIZE})",
        )

        schedule = subparsers.add_parser("schedule", help="Refresh stale records periodically")
        schedule.add_argument(
            "--interval",
            type=int,
            default=SchedulerConfig.REFRESH_INTERVAL_MINUTES,
            metavar="MINUTES",
            help=f"Refresh interval in minutes (default: {SchedulerConfig.REFRESH_INTERVAL_MINUTES})",
        )

        subparsers.add_parser("stats", help="Display record store statistics")

        return parser

    def _build_pipeline(self) -> Any:
        """
        Build the pipeline from environment settings.

        Raises:
            ConfigurationError: If required settings are missing
        """
        settings = SyncSettings.from_env()
        return self.pipeline_factory(settings)

    # ========== Output ==========

    @staticmethod
    def _print_record(record: BusinessRecord) -> None:
        print(f"  {record.name}")
        print(f"    id:       {record.id}")
        print(f"    address:  {record.address or 'N/A'}")
        print(f"    rating:   {record.rating:.1f} ({record.review_count} reviews)")
        if record.phone:
            print(f"    phone:    {record.phone}")
        if record.website:
            print(f"    website:  {record.website}")
        if record.opening_hours is not None and record.opening_hours.open_now is not None:
            print(f"    open now: {'yes' if record.opening_hours.open_now else 'no'}")
        if record.updated_at is not None:
            print(f"    updated:  {record.updated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")

    def _print_search(self, response: SearchResponse) -> None:
        print("\n" + "=" * 70)
        print(f"  RESULTS: {response.query.keyword} in {response.query.location}")
        print("=" * 70 + "\n")

        if not response.results:
            print("  No results\n")
        for record in response.results:
            self._print_record(record)
            print()

        print(
            f"  {response.count} results | enriched: {response.enriched} | "
            f"provisional: {response.degraded} | skipped: {response.skipped}"
        )
        print("=" * 70 + "\n")

    @staticmethod
    def _print_summary(title: str, summary: dict[str, Any]) -> None:
        print("\n" + "=" * 70)
        print(f"  {title}")
        print("=" * 70)
        for key, value in summary.items():
            print(f"  {key.replace('_', ' ').title():22} {value}")
        print("=" * 70 + "\n")

    # ========== Commands ==========

    async def _cmd_search(self) -> int:
        query = SearchQuery(keyword=self.args.keyword, location=self.args.location)
        missing = query.missing_fields()
        if missing:
            raise BadRequestError(
                "Missing required parameters: keyword and location are required",
                missing_fields=missing,
            )

        pipeline = self._build_pipeline()
        try:
            response = await pipeline.search(query, force_refresh=self.args.force_refresh)
        finally:
            await pipeline.cleanup()

        if self.args.json:
            print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
        else:
            self._print_search(response)
        return EXIT_OK

    async def _cmd_record(self) -> int:
        pipeline = self._build_pipeline()
        try:
            result = await pipeline.sync(self.args.place_id, force_refresh=self.args.force_refresh)
        finally:
            await pipeline.cleanup()

        if not result.is_available:
            raise RecordUnavailableError(self.args.place_id, result.error or "Record unavailable")

        print(f"\n[{result.status.value}]")
        self._print_record(result.record)
        print()
        return EXIT_OK

    async def _cmd_refresh_stale(self) -> int:
        pipeline = self._build_pipeline()
        try:
            summary = await pipeline.refresh_stale(self.args.limit)
        finally:
            await pipeline.cleanup()

        self._print_summary("STALE REFRESH SUMMARY", summary)
        return EXIT_OK

    async def _cmd_schedule(self) -> int:
        pipeline = self._build_pipeline()
        scheduler = RefreshScheduler(
            pipeline.synchronizer,
            interval_minutes=self.args.interval,
        )
        stop_event = asyncio.Event()

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, stop_event.set)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop_event.set))

        try:
            scheduler.start()

            print("\n" + "=" * 70)
            print(f"  {AppConfig.APP_NAME} v{AppConfig.VERSION}")
            print("=" * 70)
            print(f"\n  Refresh interval: {scheduler.interval_minutes} minutes")
            print(f"  Batch size:       {scheduler.batch_size}")
            print("\n  Press Ctrl+C to stop gracefully...\n")
            print("=" * 70 + "\n")

            await stop_event.wait()
        finally:
            logger.info("Stopping scheduler...")
            if scheduler.is_running:
                scheduler.stop()
            await pipeline.cleanup()

        self._print_summary("SHUTDOWN SUMMARY", {
            key: value
            for key, value in scheduler.get_statistics().items()
            if key not in ("last_summary", "next_run_time")
        })
        return EXIT_OK

    def _cmd_stats(self) -> int:
        with SQLiteRecordStore(StorageConfig.DB_PATH) as store:
            stats = store.get_statistics()
        self._print_summary("RECORD STORE STATISTICS", stats)
        return EXIT_OK

    async def _dispatch(self) -> int:
        commands = {
            "search": self._cmd_search,
            "record": self._cmd_record,
            "refresh-stale": self._cmd_refresh_stale,
            "schedule": self._cmd_schedule,
        }
        return await commands[self.args.command]()

    def run(self, argv: Optional[list[str]] = None) -> int:
        """
        Parse arguments and execute the requested command.

        Args:
            argv: Argument list (defaults to ``sys.argv[1:]``)

        Returns:
            Process exit code
        """
        self.args = self.parser.parse_args(argv)

        if not self.args.command:
            self.parser.print_help()
            return EXIT_BAD_REQUEST

        level = getattr(logging, self.args.log_level) if self.args.log_level else None
        setup_logger("places_sync", level=level)

        logger.debug(
            f"Running command {self.args.command}",
            extra={"timestamp": datetime.now().isoformat()},
        )

        try:
            if self.args.command == "stats":
                return self._cmd_stats()
            return asyncio.run(self._dispatch())

        except ConfigurationError as e:
            logger.error("Configuration validation failed")
            print("\nConfiguration Error\n", file=sys.stderr)
            for error in e.errors or [e.message]:
                print(f"  - {error}", file=sys.stderr)
            print("\nCreate a .env file with required settings:", file=sys.stderr)
            print("  GOOGLE_PLACES_API_KEY=your_key_here\n", file=sys.stderr)
            return EXIT_ERROR

        except PlacesSyncError as e:
            code = exit_code_for(e)
            log = logger.error if code == EXIT_ERROR else logger.warning
            log(f"{self.args.command} failed [{e.kind}]: {e}", exc_info=code == EXIT_ERROR)
            print(f"\nError [{e.kind}]: {e.message}\n", file=sys.stderr)
            return code


def main() -> NoReturn:
    """
    Application entry point.

    Creates and runs CLI instance.
    """
    try:
        cli = PlacesSyncCLI()
        code = cli.run()
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal Error: {e}\n", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    sys.exit(code)


if __name__ == "__main__":
    main()
