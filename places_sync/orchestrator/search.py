"""
Search orchestration for Places Sync.

Runs one provider text search, turns every result into a provisional
shell, and enriches all shells concurrently through the record
synchronizer. Results keep provider ranking order.
"""

import asyncio
import logging
from typing import Any, Optional, Union

from ..normalizer.schemas import (
    BusinessRecord,
    LocationBias,
    SearchQuery,
    SearchResponse,
    SyncResult,
    SyncStatus,
)
from ..normalizer.transformer import PlaceTransformer
from ..utils.exceptions import (
    BadRequestError,
    DataNormalizationError,
    InternalError,
    PlacesSyncError,
)
from .backoff import BackoffExecutor
from .synchronizer import RecordSynchronizer

logger = logging.getLogger(__name__)

# Per-item outcome: the synchronizer's answer or the exception it raised
ItemOutcome = Union[SyncResult, BaseException]

ENRICHED_STATUSES = (SyncStatus.FRESH, SyncStatus.REFRESHED)


class SearchOrchestrator:
    """
    Keyword + location search with per-result cache-or-refresh enrichment.

    Flow:
        1. Validate the query (no external call when invalid)
        2. Text search through the backoff executor
        3. Map each result to a provisional shell, skipping unusable ones
        4. Fan out ``synchronizer.sync`` for every shell concurrently
        5. Reassemble by original index; failed items keep their shell

    Example:
        >>> orchestrator = SearchOrchestrator(client, synchronizer, backoff)
        >>> response = await orchestrator.search_places("plumbers", "Denver, CO")
        >>> for record in response.results:
        ...     print(record.name, record.phone)
    """

    def __init__(
        self,
        client: Any,
        synchronizer: RecordSynchronizer,
        backoff: BackoffExecutor,
        default_location_bias: Optional[LocationBias] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Provider client exposing ``text_search(query, location_bias)``
            synchronizer: Record synchronizer shared with other callers
            backoff: Retry policy for the text search call
            default_location_bias: Bias applied when a query carries none
        """
        self.client = client
        self.synchronizer = synchronizer
        self.backoff = backoff
        self.default_location_bias = default_location_bias

        self._stats = {
            "searches": 0,
            "rejected": 0,
            "failed": 0,
            "results": 0,
            "enriched": 0,
            "degraded": 0,
            "skipped": 0,
        }

    async def search_places(
        self,
        keyword: str,
        location: str,
        force_refresh: bool = False,
    ) -> SearchResponse:
        """Search by separate keyword and location strings."""
        return await self.search(SearchQuery(keyword=keyword, location=location), force_refresh)

    async def search(self, query: SearchQuery, force_refresh: bool = False) -> SearchResponse:
        """
        Execute a search and enrich every result.

        Args:
            query: Keyword, location and optional location bias
            force_refresh: Re-fetch details even for fresh cached records

        Returns:
            SearchResponse in provider ranking order

        Raises:
            BadRequestError: Keyword or location missing
            UpstreamResponseError: Provider status or payload unusable
            UpstreamExhaustionError: Text search failed on every attempt
            InternalError: Unexpected failure outside per-item enrichment
        """
        missing = query.missing_fields()
        if missing:
            self._stats["rejected"] += 1
            raise BadRequestError(
                "Missing required parameters: keyword and location are required",
                missing_fields=missing,
            )

        self._stats["searches"] += 1
        location_bias = query.location_bias or self.default_location_bias

        try:
            raw_results = await self.backoff.execute(
                lambda: self.client.text_search(query.text_query, location_bias),
                description=f"text_search({query.text_query!r})",
            )
        except PlacesSyncError:
            self._stats["failed"] += 1
            raise
        except Exception as e:
            self._stats["failed"] += 1
            logger.error(
                "Unexpected failure during text search",
                extra={"operation": "text_search", "query": query.text_query, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                "Text search failed unexpectedly",
                operation="text_search",
                query=query.text_query,
            ) from e

        shells, skipped = self._build_shells(raw_results)

        try:
            outcomes = await self._enrich_all(shells, force_refresh)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats["failed"] += 1
            logger.error(
                "Unexpected failure during enrichment fan-out",
                extra={"operation": "enrich", "query": query.text_query, "error": str(e)},
                exc_info=True,
            )
            raise InternalError(
                "Result enrichment failed unexpectedly",
                operation="enrich",
                query=query.text_query,
            ) from e

        results: list[BusinessRecord] = []
        enriched = 0
        for shell, outcome in zip(shells, outcomes):
            record = self._resolve(shell, outcome)
            if record is not shell:
                enriched += 1
            results.append(record)

        degraded = len(results) - enriched

        self._stats["results"] += len(results)
        self._stats["enriched"] += enriched
        self._stats["degraded"] += degraded
        self._stats["skipped"] += skipped

        logger.info(
            "Search completed",
            extra={
                "query": query.text_query,
                "result_count": len(results),
                "enriched": enriched,
                "degraded": degraded,
                "skipped": skipped,
            },
        )

        return SearchResponse(
            query=query,
            results=results,
            enriched=enriched,
            degraded=degraded,
            skipped=skipped,
        )

    def _build_shells(self, raw_results: list[dict[str, Any]]) -> tuple[list[BusinessRecord], int]:
        """Map raw results to shells; returns (shells, skipped_count)."""
        shells: list[BusinessRecord] = []
        skipped = 0

        for position, raw in enumerate(raw_results):
            try:
                shells.append(PlaceTransformer.to_shell(raw))
            except DataNormalizationError as e:
                skipped += 1
                logger.warning(
                    "Skipping unusable search result",
                    extra={"position": position, "error": str(e)},
                )
            except Exception as e:
                skipped += 1
                logger.error(
                    "Unexpected failure mapping search result, skipping",
                    extra={"operation": "to_shell", "position": position, "error": str(e)},
                    exc_info=True,
                )

        return shells, skipped

    async def _enrich_all(
        self,
        shells: list[BusinessRecord],
        force_refresh: bool,
    ) -> list[ItemOutcome]:
        """Sync every shell concurrently; outcome ``i`` belongs to shell ``i``."""
        if not shells:
            return []

        outcomes = await asyncio.gather(
            *(
                self.synchronizer.sync(shell.id, shell=shell, force_refresh=force_refresh)
                for shell in shells
            ),
            return_exceptions=True,
        )

        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome

        return list(outcomes)

    @staticmethod
    def _resolve(shell: BusinessRecord, outcome: ItemOutcome) -> BusinessRecord:
        """Pick the record to return for one result position."""
        if isinstance(outcome, BaseException):
            logger.warning(
                "Detail enrichment raised, keeping provisional result",
                extra={"place_id": shell.id, "error": str(outcome)},
            )
            return shell

        if outcome.status in ENRICHED_STATUSES and outcome.record is not None:
            return outcome.record

        logger.debug(
            f"Detail enrichment unavailable for {shell.id} ({outcome.status.value}), keeping provisional result"
        )
        return shell

    def get_statistics(self) -> dict[str, Any]:
        return {
            **self._stats,
            "synchronizer": self.synchronizer.get_statistics(),
        }
