"""
Pytest configuration and shared fixtures for Places Sync tests.

Provides:
    - Provider payload fixtures (v1 and legacy)
    - A scripted fake provider client
    - Controllable clock
    - Temporary SQLite record stores
    - Pre-wired synchronizer and search orchestrator
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from unittest.mock import AsyncMock

import pytest

from places_sync.config import SyncSettings
from places_sync.normalizer.schemas import BusinessRecord, GeoPoint
from places_sync.orchestrator.backoff import BackoffExecutor
from places_sync.orchestrator.search import SearchOrchestrator
from places_sync.orchestrator.staleness import StalenessEvaluator
from places_sync.orchestrator.synchronizer import RecordSynchronizer
from places_sync.orchestrator.throttle import RequestThrottle
from places_sync.storage.record_store import SQLiteRecordStore


# ========== Clock ==========


class FixedClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2026-01-15 12:00 UTC."""
    return FixedClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


# ========== Fake Provider Client ==========


DetailsScript = Union[Dict[str, Any], Exception, List[Union[Dict[str, Any], Exception]]]


class FakePlacesClient:
    """
    Scripted stand-in for GooglePlacesClient.

    ``details`` maps place ids to a payload, an exception, or a list of
    payloads/exceptions consumed one per call (the last entry repeats).
    """

    def __init__(
        self,
        search_results: Optional[Union[List[Dict[str, Any]], Exception]] = None,
        details: Optional[Dict[str, DetailsScript]] = None,
    ):
        self.search_results = search_results if search_results is not None else []
        self.details = details or {}
        self.text_search_calls: List[tuple] = []
        self.detail_calls: Counter = Counter()
        self.closed = False

    async def text_search(self, query: str, location_bias=None) -> List[Dict[str, Any]]:
        self.text_search_calls.append((query, location_bias))
        if isinstance(self.search_results, Exception):
            raise self.search_results
        return self.search_results

    async def place_details(self, place_id: str) -> Dict[str, Any]:
        call_index = self.detail_calls[place_id]
        self.detail_calls[place_id] += 1

        script = self.details.get(place_id)
        if script is None:
            raise KeyError(f"No scripted details for {place_id}")
        if isinstance(script, list):
            script = script[min(call_index, len(script) - 1)]
        if isinstance(script, Exception):
            raise script
        return script

    @property
    def total_detail_calls(self) -> int:
        return sum(self.detail_calls.values())

    async def close(self) -> None:
        self.closed = True

    def get_stats(self) -> Dict[str, Any]:
        return {
            "text_searches": len(self.text_search_calls),
            "detail_lookups": self.total_detail_calls,
        }


@pytest.fixture
def fake_client() -> FakePlacesClient:
    """Fake client with no scripted responses."""
    return FakePlacesClient()


# ========== Provider Payload Fixtures ==========


def v1_place(place_id: str, name: str, **extra) -> Dict[str, Any]:
    """Minimal v1 search result for one place."""
    payload = {
        "id": place_id,
        "displayName": {"text": name, "languageCode": "en"},
        "formattedAddress": f"{name} St, Denver, CO, USA",
        "location": {"latitude": 39.74, "longitude": -104.99},
        "rating": 4.5,
        "userRatingCount": 100,
        "types": ["plumber", "point_of_interest"],
    }
    payload.update(extra)
    return payload


def v1_details(place_id: str, name: str, **extra) -> Dict[str, Any]:
    """v1 details payload including contact fields and hours."""
    payload = v1_place(
        place_id,
        name,
        nationalPhoneNumber="(303) 555-0100",
        websiteUri=f"https://{place_id.lower()}.example",
        businessStatus="OPERATIONAL",
        currentOpeningHours={
            "openNow": True,
            "weekdayDescriptions": ["Monday: 8:00 AM - 5:00 PM"],
        },
    )
    payload.update(extra)
    return payload


@pytest.fixture
def v1_search_payload() -> Dict[str, Any]:
    """Raw places:searchText response body."""
    return {
        "places": [
            v1_place("A", "Alpha Plumbing"),
            v1_place("B", "Bravo Plumbing"),
            v1_place("C", "Charlie Plumbing"),
        ]
    }


@pytest.fixture
def legacy_search_result() -> Dict[str, Any]:
    """Single result from the legacy textsearch endpoint."""
    return {
        "place_id": "ChIJlegacy1",
        "name": "Mile High Plumbing",
        "formatted_address": "1234 Blake St, Denver, CO 80205, USA",
        "geometry": {"location": {"lat": 39.7508, "lng": -104.9966}},
        "rating": 4.7,
        "user_ratings_total": 312,
        "types": ["plumber", "point_of_interest", "plumber"],
        "business_status": "OPERATIONAL",
        "opening_hours": {"open_now": False},
    }


@pytest.fixture
def legacy_details_result(legacy_search_result) -> Dict[str, Any]:
    """Legacy details ``result`` object for the same place."""
    return {
        **legacy_search_result,
        "formatted_phone_number": "(303) 555-0199",
        "website": "https://milehighplumbing.example",
        "opening_hours": {
            "open_now": True,
            "weekday_text": ["Monday: 7:00 AM - 6:00 PM", "Tuesday: 7:00 AM - 6:00 PM"],
        },
    }


# ========== Record Fixtures ==========


@pytest.fixture
def sample_record() -> BusinessRecord:
    """Fully populated, unpersisted record."""
    return BusinessRecord(
        id="ChIJN1t_tDeuEmsRUsoyG83frY4",
        name="Mile High Plumbing",
        rating=4.7,
        review_count=312,
        address="1234 Blake St, Denver, CO 80205, USA",
        location=GeoPoint(latitude=39.7508, longitude=-104.9966),
        categories=["plumber", "point_of_interest"],
        phone="(303) 555-0199",
        website="https://milehighplumbing.example",
        business_status="OPERATIONAL",
    )


# ========== Storage Fixtures ==========


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Path for a throwaway SQLite database."""
    return tmp_path / "places.db"


@pytest.fixture
def record_store(temp_db_path: Path):
    """
    Provide a clean SQLiteRecordStore.

    Yields:
        Store backed by a temporary database
    """
    store = SQLiteRecordStore(db_path=temp_db_path)
    yield store
    store.close()


# ========== Orchestrator Fixtures ==========


@pytest.fixture
def recorded_sleep() -> AsyncMock:
    """Sleep replacement that records requested delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def backoff(recorded_sleep) -> BackoffExecutor:
    """Three-attempt executor that never actually sleeps."""
    return BackoffExecutor(max_attempts=3, base_delay=0.5, max_delay=8.0, sleep=recorded_sleep)


@pytest.fixture
def throttle() -> RequestThrottle:
    """Throttle with the production concurrency and no spacing delay."""
    return RequestThrottle(max_concurrent=1, min_interval=0.0)


@pytest.fixture
def evaluator(clock) -> StalenessEvaluator:
    return StalenessEvaluator(threshold=timedelta(hours=24), clock=clock)


@pytest.fixture
def synchronizer(fake_client, record_store, throttle, backoff, evaluator, clock) -> RecordSynchronizer:
    """Synchronizer wired to the fake client and a temporary store."""
    return RecordSynchronizer(fake_client, record_store, throttle, backoff, evaluator, clock)


@pytest.fixture
def orchestrator(fake_client, synchronizer, backoff) -> SearchOrchestrator:
    return SearchOrchestrator(fake_client, synchronizer, backoff)


# ========== Settings Fixtures ==========


@pytest.fixture
def test_settings(temp_db_path: Path) -> SyncSettings:
    """Stub settings suitable for building a pipeline in tests."""
    return SyncSettings(
        api_key="test-key",
        throttle_min_interval_ms=0,
        backoff_base_delay=0.0,
        backoff_max_delay=0.0,
        db_path=temp_db_path,
    )
