"""
Staleness policy for cached records.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from ..normalizer.schemas import BusinessRecord, ensure_utc, utc_now

DEFAULT_THRESHOLD = timedelta(hours=24)


def needs_refresh(
    updated_at: Optional[datetime],
    threshold: timedelta = DEFAULT_THRESHOLD,
    now: Optional[datetime] = None,
) -> bool:
    """
    Decide whether a record must be re-fetched.

    A record that was never written is always stale. Otherwise it is stale
    once its age reaches the threshold (the boundary itself counts as stale).

    Args:
        updated_at: Last write time; naive values are treated as UTC
        threshold: Maximum age of a fresh record
        now: Current time (defaults to the UTC wall clock)

    Returns:
        True if the record should be refreshed
    """
    if updated_at is None:
        return True
    current = ensure_utc(now) if now is not None else utc_now()
    return current - ensure_utc(updated_at) >= threshold


class StalenessEvaluator:
    """Applies one staleness threshold using an injectable clock."""

    def __init__(
        self,
        threshold: timedelta = DEFAULT_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
    ):
        if threshold <= timedelta(0):
            raise ValueError("threshold must be positive")
        self.threshold = threshold
        self.clock = clock

    def is_stale(self, record: Optional[BusinessRecord]) -> bool:
        if record is None:
            return True
        return needs_refresh(record.updated_at, self.threshold, self.clock())

    def age(self, record: BusinessRecord) -> Optional[timedelta]:
        """Time since the record was last written (None if never)."""
        if record.updated_at is None:
            return None
        return ensure_utc(self.clock()) - record.updated_at

    def stale_cutoff(self) -> datetime:
        """Records written at or before this instant are stale."""
        return ensure_utc(self.clock()) - self.threshold
