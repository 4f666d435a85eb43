"""
Integration tests for PlacesSyncPipeline with a fake provider client.
"""

from datetime import timedelta

import pytest

from places_sync.clients.google_places import GooglePlacesClient
from places_sync.config import SyncSettings
from places_sync.normalizer.schemas import SyncStatus
from places_sync.orchestrator.pipeline import PlacesSyncPipeline
from places_sync.utils.exceptions import ConfigurationError, ServerError
from tests.conftest import v1_details, v1_place


@pytest.fixture
def pipeline(test_settings, fake_client, clock):
    pipeline = PlacesSyncPipeline(test_settings, client=fake_client, clock=clock)
    yield pipeline
    pipeline.store.close()


class TestConstruction:
    def test_components_share_one_throttle(self, pipeline):
        assert pipeline.synchronizer.throttle is pipeline.throttle
        assert pipeline.orchestrator.synchronizer is pipeline.synchronizer
        assert pipeline.evaluator.threshold == timedelta(hours=24)

    def test_missing_api_key_fails_before_serving(self, temp_db_path):
        with pytest.raises(ConfigurationError):
            PlacesSyncPipeline(SyncSettings(api_key="", db_path=temp_db_path))

    def test_builds_real_client_from_settings(self, test_settings):
        pipeline = PlacesSyncPipeline(test_settings)
        try:
            assert isinstance(pipeline.client, GooglePlacesClient)
            assert pipeline.client.config.api_key == "test-key"
        finally:
            pipeline.store.close()

    def test_repr(self, pipeline):
        assert "v1" in repr(pipeline)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_second_search_served_from_store(self, pipeline, fake_client):
        fake_client.search_results = [v1_place("A", "Alpha"), v1_place("B", "Bravo")]
        fake_client.details["A"] = v1_details("A", "Alpha")
        fake_client.details["B"] = v1_details("B", "Bravo")

        first = await pipeline.search_places("plumbers", "Denver, CO")
        second = await pipeline.search_places("plumbers", "Denver, CO")

        assert first.results == second.results
        assert fake_client.total_detail_calls == 2
        assert len(fake_client.text_search_calls) == 2

    @pytest.mark.asyncio
    async def test_stale_records_refreshed_after_clock_advance(self, pipeline, fake_client, clock):
        fake_client.details["A"] = v1_details("A", "Alpha")
        await pipeline.sync("A")

        clock.advance(hours=25)
        fake_client.details["A"] = v1_details("A", "Alpha Renamed")
        summary = await pipeline.refresh_stale()

        assert summary["refreshed"] == 1
        record = await pipeline.get_record("A")
        assert record.name == "Alpha Renamed"
        assert record.updated_at == clock()

    @pytest.mark.asyncio
    async def test_sync_unavailable(self, pipeline, fake_client):
        fake_client.details["X"] = ServerError("down")

        result = await pipeline.sync("X")

        assert result.status == SyncStatus.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_statistics_and_cleanup(self, test_settings, fake_client, clock):
        async with PlacesSyncPipeline(test_settings, client=fake_client, clock=clock) as pipeline:
            fake_client.search_results = [v1_place("A", "Alpha")]
            fake_client.details["A"] = v1_details("A", "Alpha")
            await pipeline.search_places("plumbers", "Denver, CO")
            stats = pipeline.get_statistics()

        assert stats["search"]["searches"] == 1
        assert stats["store"]["total_records"] == 1
        assert stats["client"]["detail_lookups"] == 1
        assert fake_client.closed
