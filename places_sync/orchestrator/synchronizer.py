"""
Record synchronization for Places Sync.

Decides per place id whether the cached record can be served or must be
re-fetched from the provider, performs the throttled and retried detail
fetch, and writes the result back to the store.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional

from ..normalizer.schemas import BusinessRecord, SyncResult, SyncStatus
from ..normalizer.transformer import PlaceTransformer
from ..utils.exceptions import (
    APIError,
    DataNormalizationError,
    InternalError,
    UpstreamExhaustionError,
    UpstreamResponseError,
)
from .backoff import BackoffExecutor
from .staleness import StalenessEvaluator
from .throttle import RequestThrottle

logger = logging.getLogger(__name__)


class RecordSynchronizer:
    """
    Cache-or-refresh logic for single business records.

    Decision flow:
        1. Look up the record in the store
        2. Fresh record: return it without any external call
        3. Missing or stale: fetch details (throttled, with backoff)
        4. Fetch failed: fall back to the stale record, or report unavailable
        5. Fetch succeeded: map, stamp ``updated_at`` and upsert

    Upserts for the same id are serialized with a per-id lock.

    Example:
        >>> synchronizer = RecordSynchronizer(client, store, throttle, backoff, evaluator)
        >>> result = await synchronizer.sync("ChIJN1t_tDeuEmsRUsoyG83frY4")
        >>> if result.is_available:
        ...     print(result.status, result.record.name)
    """

    def __init__(
        self,
        client: Any,
        store: Any,
        throttle: RequestThrottle,
        backoff: BackoffExecutor,
        evaluator: StalenessEvaluator,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the synchronizer.

        Args:
            client: Provider client exposing ``place_details(place_id)``
            store: Record store exposing ``find_by_id`` and ``upsert``
            throttle: Shared provider request throttle
            backoff: Retry policy for detail fetches
            evaluator: Staleness policy
            clock: Write-time clock (defaults to the evaluator's clock)
        """
        self.client = client
        self.store = store
        self.throttle = throttle
        self.backoff = backoff
        self.evaluator = evaluator
        self.clock = clock or evaluator.clock

        self._locks: dict[str, list] = {}
        self._stats = {
            "requests": 0,
            "fresh": 0,
            "refreshed": 0,
            "stale_fallback": 0,
            "unavailable": 0,
        }

    @asynccontextmanager
    async def _record_lock(self, place_id: str) -> AsyncIterator[None]:
        """Hold the per-id write lock; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.get(place_id)
        if entry is None:
            entry = self._locks[place_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[place_id]

    def _finish(self, result: SyncResult) -> SyncResult:
        self._stats[result.status.value] += 1
        return result

    async def sync(
        self,
        place_id: str,
        shell: Optional[BusinessRecord] = None,
        force_refresh: bool = False,
    ) -> SyncResult:
        """
        Return the current record for ``place_id``, refreshing it if stale.

        Args:
            place_id: Provider place identifier
            shell: Provisional record supplying fields the details payload omits
            force_refresh: Skip the freshness check and always fetch

        Returns:
            SyncResult with status fresh, refreshed, stale_fallback or unavailable

        Raises:
            InternalError: Unexpected failure while reading, mapping or persisting
        """
        self._stats["requests"] += 1

        try:
            existing = await self.store.find_by_id(place_id)
        except Exception as e:
            logger.error(
                "Record lookup failed",
                extra={"operation": "find_by_id", "place_id": place_id, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                f"Failed to read record {place_id}",
                operation="find_by_id",
                place_id=place_id,
            ) from e

        if existing is not None and not force_refresh and not self.evaluator.is_stale(existing):
            logger.debug(f"Fresh record served from store: {place_id}")
            return self._finish(SyncResult(place_id=place_id, status=SyncStatus.FRESH, record=existing))

        try:
            raw = await self.backoff.execute(
                lambda: self.throttle.schedule(lambda: self.client.place_details(place_id)),
                description=f"place_details({place_id})",
            )
        except (UpstreamExhaustionError, UpstreamResponseError) as e:
            return self._fallback(place_id, existing, e)
        except APIError as e:
            logger.error(
                "Provider rejected details request",
                extra={"operation": "place_details", "place_id": place_id, "error": str(e)},
            )
            return self._fallback(place_id, existing, e)

        try:
            record = PlaceTransformer.to_record(raw, place_id=place_id, fallback=shell)
        except DataNormalizationError as e:
            return self._fallback(place_id, existing, e)
        except Exception as e:
            logger.error(
                "Unexpected failure mapping details",
                extra={"operation": "map", "place_id": place_id, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                f"Failed to map details for {place_id}",
                operation="map",
                place_id=place_id,
            ) from e

        try:
            async with self._record_lock(record.id):
                stored = await self.store.upsert(record.with_timestamp(self.clock()))
        except Exception as e:
            logger.error(
                "Unexpected failure persisting record",
                extra={"operation": "upsert", "place_id": place_id, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                f"Failed to persist record {place_id}",
                operation="upsert",
                place_id=place_id,
            ) from e

        logger.info(
            "Record refreshed",
            extra={"place_id": place_id, "was_cached": existing is not None},
        )
        return self._finish(SyncResult(place_id=place_id, status=SyncStatus.REFRESHED, record=stored))

    def _fallback(
        self,
        place_id: str,
        existing: Optional[BusinessRecord],
        error: Exception,
    ) -> SyncResult:
        """Degrade to the cached record, or report the id unavailable."""
        if existing is not None:
            logger.warning(
                "Refresh failed, serving stale record",
                extra={"place_id": place_id, "error": str(error)},
            )
            return self._finish(
                SyncResult(
                    place_id=place_id,
                    status=SyncStatus.STALE_FALLBACK,
                    record=existing,
                    error=str(error),
                )
            )

        logger.warning(
            "Refresh failed and nothing cached",
            extra={"place_id": place_id, "error": str(error)},
        )
        return self._finish(SyncResult.unavailable(place_id, str(error)))

    async def get_record(self, place_id: str) -> Optional[BusinessRecord]:
        """Current record for ``place_id``, or None if unavailable."""
        result = await self.sync(place_id)
        return result.record

    async def refresh_stale(self, limit: Optional[int] = None) -> dict[str, Any]:
        """
        Re-sync records the store reports as stale.

        Args:
            limit: Maximum records to refresh in this run

        Returns:
            Counts per outcome, plus ``checked`` and ``errors``
        """
        stale = await self.store.list_stale(self.evaluator.stale_cutoff(), limit)

        summary = {
            "checked": len(stale),
            "refreshed": 0,
            "stale_fallback": 0,
            "unavailable": 0,
            "fresh": 0,
            "errors": 0,
        }

        if not stale:
            logger.debug("No stale records to refresh")
            return summary

        outcomes = await asyncio.gather(
            *(self.sync(record.id) for record in stale),
            return_exceptions=True,
        )

        for record, outcome in zip(stale, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                summary["errors"] += 1
                logger.error(
                    "Stale refresh failed",
                    extra={"place_id": record.id, "error": str(outcome)},
                )
                continue
            summary[outcome.status.value] += 1

        logger.info("Stale refresh completed", extra=summary)
        return summary

    def get_statistics(self) -> dict[str, Any]:
        return {
            **self._stats,
            "threshold_hours": self.evaluator.threshold.total_seconds() / 3600,
            "throttle": self.throttle.get_statistics(),
            "backoff": self.backoff.get_statistics(),
        }
