"""
Places Sync pipeline.

Wires the provider client, record store, throttle, backoff and staleness
policy into one object that serves searches and single-record lookups.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from ..clients.google_places import GooglePlacesClient, PlacesClientConfig
from ..config import SyncSettings
from ..normalizer.schemas import (
    BusinessRecord,
    LocationBias,
    SearchQuery,
    SearchResponse,
    SyncResult,
    utc_now,
)
from ..storage.record_store import SQLiteRecordStore
from .backoff import BackoffExecutor
from .search import SearchOrchestrator
from .staleness import StalenessEvaluator
from .synchronizer import RecordSynchronizer
from .throttle import RequestThrottle

logger = logging.getLogger(__name__)


class PlacesSyncPipeline:
    """
    Fully assembled synchronization layer.

    One throttle is shared by every detail fetch the pipeline performs, so
    search fan-out and background refreshes respect the same pacing.

    Example:
        >>> settings = SyncSettings.from_env()
        >>> async with PlacesSyncPipeline(settings) as pipeline:
        ...     response = await pipeline.search_places("plumbers", "Denver, CO")
        ...     print(response.count)
    """

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        client: Optional[Any] = None,
        store: Optional[Any] = None,
        clock: Callable[[], datetime] = utc_now,
        default_location_bias: Optional[LocationBias] = None,
    ):
        """
        Build every component from settings.

        Args:
            settings: Process settings (defaults to ``SyncSettings.from_env()``)
            client: Provider client override (tests inject fakes)
            store: Record store override
            clock: Clock used for staleness and write timestamps
            default_location_bias: Bias applied to queries that carry none

        Raises:
            ConfigurationError: If no client is injected and settings are invalid
        """
        self.settings = settings or SyncSettings.from_env()

        if client is None:
            self.settings.validate()
            client = GooglePlacesClient(PlacesClientConfig.from_settings(self.settings))

        self.client = client
        self.store = store if store is not None else SQLiteRecordStore(self.settings.db_path)

        self.throttle = RequestThrottle(
            max_concurrent=self.settings.throttle_max_concurrent,
            min_interval=self.settings.throttle_min_interval,
        )
        self.backoff = BackoffExecutor(
            max_attempts=self.settings.backoff_max_attempts,
            base_delay=self.settings.backoff_base_delay,
            max_delay=self.settings.backoff_max_delay,
        )
        self.evaluator = StalenessEvaluator(self.settings.staleness_threshold, clock)

        self.synchronizer = RecordSynchronizer(
            self.client,
            self.store,
            self.throttle,
            self.backoff,
            self.evaluator,
            clock,
        )
        self.orchestrator = SearchOrchestrator(
            self.client,
            self.synchronizer,
            self.backoff,
            default_location_bias=default_location_bias,
        )

        logger.info(
            "PlacesSyncPipeline initialized",
            extra={
                "api_version": self.settings.api_version,
                "threshold_hours": self.settings.staleness_threshold_hours,
                "db_path": str(self.settings.db_path),
            },
        )

    async def __aenter__(self) -> "PlacesSyncPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    async def search(self, query: SearchQuery, force_refresh: bool = False) -> SearchResponse:
        return await self.orchestrator.search(query, force_refresh=force_refresh)

    async def search_places(
        self,
        keyword: str,
        location: str,
        force_refresh: bool = False,
    ) -> SearchResponse:
        return await self.orchestrator.search_places(keyword, location, force_refresh=force_refresh)

    async def sync(self, place_id: str, force_refresh: bool = False) -> SyncResult:
        return await self.synchronizer.sync(place_id, force_refresh=force_refresh)

    async def get_record(self, place_id: str) -> Optional[BusinessRecord]:
        return await self.synchronizer.get_record(place_id)

    async def refresh_stale(self, limit: Optional[int] = None) -> dict[str, Any]:
        return await self.synchronizer.refresh_stale(limit)

    def get_statistics(self) -> dict[str, Any]:
        """
        Get statistics from every component.

        Returns:
            Dictionary with search, synchronizer, client and store metrics
        """
        stats: dict[str, Any] = {
            "search": self.orchestrator.get_statistics(),
            "store": self.store.get_statistics(),
        }
        client_stats = getattr(self.client, "get_stats", None)
        if callable(client_stats):
            stats["client"] = client_stats()
        return stats

    async def cleanup(self) -> None:
        """Close the provider session and the store connection."""
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()
        self.store.close()
        logger.info("PlacesSyncPipeline cleanup complete")

    def __repr__(self) -> str:
        return (
            f"PlacesSyncPipeline(api_version={self.settings.api_version!r}, "
            f"db_path={str(self.settings.db_path)!r})"
        )
