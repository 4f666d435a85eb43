"""
Stale Record Refresh Scheduler.

APScheduler-based periodic refresh of cached records that have aged
past the staleness threshold.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import SchedulerConfig
from .synchronizer import RecordSynchronizer

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Background scheduler that keeps the record store warm.

    Scheduled Tasks:
        - Every N minutes: refresh up to ``batch_size`` stale records

    Runs on the caller's event loop, so refreshes share the pipeline's
    throttle with interactive searches.

    Example:
        >>> scheduler = RefreshScheduler(pipeline.synchronizer, interval_minutes=30)
        >>> scheduler.start()
        >>> # ... let it run ...
        >>> scheduler.stop()
    """

    JOB_ID = "refresh_stale"

    def __init__(
        self,
        synchronizer: RecordSynchronizer,
        interval_minutes: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the refresh scheduler.

        Args:
            synchronizer: Record synchronizer performing the refreshes
            interval_minutes: Run interval (defaults to SchedulerConfig)
            batch_size: Records per run (defaults to SchedulerConfig)
        """
        self.synchronizer = synchronizer
        self.interval_minutes = interval_minutes or SchedulerConfig.REFRESH_INTERVAL_MINUTES
        self.batch_size = batch_size or SchedulerConfig.REFRESH_BATCH_SIZE

        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False
        self._last_run_time: Optional[datetime] = None
        self._last_summary: Optional[dict[str, Any]] = None

        self._stats = {
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "records_checked": 0,
            "records_refreshed": 0,
        }

        logger.info(
            f"RefreshScheduler initialized: {self.interval_minutes}min interval, "
            f"batch of {self.batch_size}"
        )

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self, run_immediately: bool = True) -> None:
        """
        Start periodic refreshes on the running event loop.

        Args:
            run_immediately: Also schedule one run right away
        """
        if self._is_running:
            logger.warning("Scheduler is already running")
            return

        job_options: dict[str, Any] = {}
        if run_immediately:
            job_options["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name="Stale Record Refresh",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping executions
            **job_options,
        )
        self.scheduler.start()
        self._is_running = True

        logger.info(
            "RefreshScheduler started",
            extra={
                "interval_minutes": self.interval_minutes,
                "batch_size": self.batch_size,
                "jobs": [job.id for job in self.scheduler.get_jobs()],
            },
        )

    def stop(self, wait: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            wait: Wait for a running refresh to finish
        """
        if not self._is_running or self.scheduler is None:
            logger.warning("Scheduler is not running")
            return

        logger.info("Stopping RefreshScheduler...")
        self.scheduler.shutdown(wait=wait)
        self._is_running = False
        logger.info("RefreshScheduler stopped successfully")

    async def run_once(self) -> dict[str, Any]:
        """
        Refresh one batch of stale records.

        Failures are logged and counted; they never stop the schedule.

        Returns:
            Refresh summary (empty if the run failed)
        """
        self._stats["total_runs"] += 1
        self._last_run_time = datetime.now(timezone.utc)

        try:
            summary = await self.synchronizer.refresh_stale(self.batch_size)
        except Exception as e:
            self._stats["failed_runs"] += 1
            logger.error(f"Stale refresh run failed: {e}", exc_info=True)
            return {}

        self._stats["successful_runs"] += 1
        self._stats["records_checked"] += summary.get("checked", 0)
        self._stats["records_refreshed"] += summary.get("refreshed", 0)
        self._last_summary = summary
        return summary

    def get_statistics(self) -> dict[str, Any]:
        """
        Get scheduler statistics.

        Returns:
            Dictionary with run counters, last run time and next run time
        """
        next_run = None
        if self._is_running and self.scheduler is not None:
            job = self.scheduler.get_job(self.JOB_ID)
            if job is not None and job.next_run_time is not None:
                next_run = job.next_run_time.isoformat()

        return {
            **self._stats,
            "is_running": self._is_running,
            "interval_minutes": self.interval_minutes,
            "batch_size": self.batch_size,
            "last_run_time": self._last_run_time.isoformat() if self._last_run_time else None,
            "last_summary": self._last_summary,
            "next_run_time": next_run,
        }
