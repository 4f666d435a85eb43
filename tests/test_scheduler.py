"""
Tests for RefreshScheduler.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from places_sync.orchestrator.scheduler import RefreshScheduler


@pytest.fixture
def mock_synchronizer():
    synchronizer = MagicMock()
    synchronizer.refresh_stale = AsyncMock(
        return_value={"checked": 3, "refreshed": 2, "stale_fallback": 1, "unavailable": 0, "fresh": 0, "errors": 0}
    )
    return synchronizer


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_run_once_refreshes_one_batch(self, mock_synchronizer):
        scheduler = RefreshScheduler(mock_synchronizer, interval_minutes=15, batch_size=25)

        summary = await scheduler.run_once()

        mock_synchronizer.refresh_stale.assert_awaited_once_with(25)
        assert summary["refreshed"] == 2
        stats = scheduler.get_statistics()
        assert stats["successful_runs"] == 1
        assert stats["records_checked"] == 3
        assert stats["records_refreshed"] == 2
        assert stats["last_run_time"] is not None

    @pytest.mark.asyncio
    async def test_failed_run_is_counted_not_raised(self, mock_synchronizer):
        mock_synchronizer.refresh_stale.side_effect = RuntimeError("store locked")
        scheduler = RefreshScheduler(mock_synchronizer, interval_minutes=15, batch_size=25)

        assert await scheduler.run_once() == {}
        assert scheduler.get_statistics()["failed_runs"] == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, mock_synchronizer):
        scheduler = RefreshScheduler(mock_synchronizer, interval_minutes=30, batch_size=10)

        scheduler.start(run_immediately=False)
        try:
            assert scheduler.is_running
            job = scheduler.scheduler.get_job(RefreshScheduler.JOB_ID)
            assert job is not None
            assert job.max_instances == 1
            assert scheduler.get_statistics()["next_run_time"] is not None
        finally:
            scheduler.stop()

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, mock_synchronizer):
        scheduler = RefreshScheduler(mock_synchronizer, interval_minutes=30, batch_size=10)

        scheduler.start(run_immediately=False)
        first = scheduler.scheduler
        scheduler.start(run_immediately=False)

        assert scheduler.scheduler is first
        scheduler.stop()

    def test_stop_when_not_running(self, mock_synchronizer):
        scheduler = RefreshScheduler(mock_synchronizer, interval_minutes=30, batch_size=10)
        scheduler.stop()
        assert not scheduler.is_running

    def test_defaults_from_config(self, mock_synchronizer):
        scheduler = RefreshScheduler(mock_synchronizer)
        assert scheduler.interval_minutes == 60
        assert scheduler.batch_size == 50
