"""
Record storage for Places Sync.

SQLite-backed store of business records keyed by provider place id, with
atomic upserts, staleness queries and statistics tracking. Blocking sqlite
calls run in a worker thread so the event loop is never stalled.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..config import StorageConfig
from ..normalizer.schemas import BusinessRecord, GeoPoint, OpeningHours, ensure_utc, utc_now
from ..utils.exceptions import StorageError

logger = logging.getLogger(__name__)

# Fixed-width UTC format so stored timestamps compare correctly as text
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def _format_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime(_TIMESTAMP_FORMAT)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


class SQLiteRecordStore:
    """
    SQLite-based business record store.

    Features:
    - One row per place id (primary key)
    - Upsert as a single INSERT ... ON CONFLICT statement
    - ``updated_at`` never moves backwards
    - Stale-record listing for background refresh
    - Read/write statistics

    Attributes:
        db_path: Path to SQLite database file
        _connection: Active database connection (None if closed)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize the record store.

        Args:
            db_path: Path to SQLite database (defaults to StorageConfig.DB_PATH)
        """
        self.db_path = Path(db_path or StorageConfig.DB_PATH)
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._stats = {
            "reads": 0,
            "hits": 0,
            "misses": 0,
            "writes": 0,
        }

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_database()

        logger.info(f"SQLiteRecordStore initialized: db={self.db_path}")

    def _initialize_database(self) -> None:
        """Create database schema if it doesn't exist."""
        try:
            with self._lock:
                conn = self._get_connection()
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS records (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        rating REAL NOT NULL DEFAULT 0,
                        review_count INTEGER NOT NULL DEFAULT 0,
                        address TEXT NOT NULL DEFAULT '',
                        latitude REAL NOT NULL DEFAULT 0,
                        longitude REAL NOT NULL DEFAULT 0,
                        categories TEXT NOT NULL DEFAULT '[]',
                        phone TEXT,
                        website TEXT,
                        business_status TEXT,
                        opening_hours TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)

                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_records_updated_at
                    ON records(updated_at)
                """)

            logger.debug("Database schema initialized successfully")

        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize database: {e}",
                operation="initialize",
                db_path=str(self.db_path)
            ) from e

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get database connection with proper configuration.

        Returns:
            Configured SQLite connection
        """
        if self._connection is None:
            self._connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,  # Used from worker threads
                isolation_level=None  # Autocommit; each upsert is one statement
            )
            self._connection.row_factory = sqlite3.Row

        return self._connection

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> BusinessRecord:
        opening_hours = json.loads(row["opening_hours"]) if row["opening_hours"] else None
        return BusinessRecord(
            id=row["id"],
            name=row["name"],
            rating=row["rating"],
            review_count=row["review_count"],
            address=row["address"],
            location=GeoPoint(latitude=row["latitude"], longitude=row["longitude"]),
            categories=json.loads(row["categories"]),
            phone=row["phone"],
            website=row["website"],
            business_status=row["business_status"],
            opening_hours=OpeningHours(**opening_hours) if opening_hours else None,
            updated_at=_parse_timestamp(row["updated_at"]),
        )

    def _find_by_id_sync(self, place_id: str) -> Optional[BusinessRecord]:
        try:
            with self._lock:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT * FROM records WHERE id = ?", (place_id,))
                row = cursor.fetchone()
                self._stats["reads"] += 1
                self._stats["misses" if row is None else "hits"] += 1

            if row is None:
                logger.debug(f"Record miss: {place_id}")
                return None

            return self._row_to_record(row)

        except (sqlite3.Error, json.JSONDecodeError) as e:
            raise StorageError(
                f"Failed to read record: {e}",
                operation="read",
                record_id=place_id
            ) from e

    def _upsert_sync(self, record: BusinessRecord) -> BusinessRecord:
        updated_at = record.updated_at or utc_now()
        timestamp = _format_timestamp(updated_at)
        opening_hours = (
            json.dumps(record.opening_hours.model_dump(), ensure_ascii=False)
            if record.opening_hours is not None
            else None
        )

        try:
            with self._lock:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    INSERT INTO records (
                        id, name, rating, review_count, address,
                        latitude, longitude, categories, phone, website,
                        business_status, opening_hours, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name = excluded.name,
                        rating = excluded.rating,
                        review_count = excluded.review_count,
                        address = excluded.address,
                        latitude = excluded.latitude,
                        longitude = excluded.longitude,
                        categories = excluded.categories,
                        phone = excluded.phone,
                        website = excluded.website,
                        business_status = excluded.business_status,
                        opening_hours = excluded.opening_hours,
                        updated_at = MAX(records.updated_at, excluded.updated_at)
                """, (
                    record.id,
                    record.name,
                    record.rating,
                    record.review_count,
                    record.address,
                    record.location.latitude,
                    record.location.longitude,
                    json.dumps(record.categories, ensure_ascii=False),
                    record.phone,
                    record.website,
                    record.business_status,
                    opening_hours,
                    timestamp,
                    timestamp,
                ))

                cursor.execute("SELECT * FROM records WHERE id = ?", (record.id,))
                row = cursor.fetchone()
                self._stats["writes"] += 1

            logger.debug(f"Upserted record: {record.id} (updated_at: {row['updated_at']})")
            return self._row_to_record(row)

        except (sqlite3.Error, TypeError) as e:
            raise StorageError(
                f"Failed to upsert record: {e}",
                operation="upsert",
                record_id=record.id
            ) from e

    def _list_stale_sync(self, older_than: datetime, limit: Optional[int]) -> list[BusinessRecord]:
        try:
            with self._lock:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT * FROM records
                    WHERE updated_at <= ?
                    ORDER BY updated_at ASC
                    LIMIT ?
                """, (_format_timestamp(older_than), -1 if limit is None else limit))
                rows = cursor.fetchall()

            return [self._row_to_record(row) for row in rows]

        except (sqlite3.Error, json.JSONDecodeError) as e:
            raise StorageError(
                f"Failed to list stale records: {e}",
                operation="list_stale"
            ) from e

    def _count_sync(self) -> int:
        try:
            with self._lock:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM records")
                return cursor.fetchone()["count"]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count records: {e}", operation="count") from e

    async def find_by_id(self, place_id: str) -> Optional[BusinessRecord]:
        """
        Look up a record by place id.

        Args:
            place_id: Provider place identifier

        Returns:
            Stored record, or None if absent

        Raises:
            StorageError: If the read fails
        """
        return await asyncio.to_thread(self._find_by_id_sync, place_id)

    async def upsert(self, record: BusinessRecord) -> BusinessRecord:
        """
        Insert or fully replace a record.

        Every mapped field is overwritten; ``updated_at`` is set to the
        record's timestamp unless the stored one is later.

        Args:
            record: Record to write (``updated_at`` defaults to now)

        Returns:
            The record as stored

        Raises:
            StorageError: If the write fails
        """
        return await asyncio.to_thread(self._upsert_sync, record)

    async def list_stale(
        self,
        older_than: datetime,
        limit: Optional[int] = None,
    ) -> list[BusinessRecord]:
        """
        List records last written at or before ``older_than``, oldest first.

        Args:
            older_than: Cutoff timestamp (inclusive)
            limit: Maximum records to return (None for all)

        Returns:
            Stale records ordered by ``updated_at``
        """
        return await asyncio.to_thread(self._list_stale_sync, older_than, limit)

    async def count(self) -> int:
        """Number of stored records."""
        return await asyncio.to_thread(self._count_sync)

    def get_statistics(self) -> dict[str, Any]:
        """
        Get store statistics.

        Returns:
            Dictionary containing:
            - total_records: Number of stored records
            - oldest_update / newest_update: ISO timestamps (None if empty)
            - reads / hits / misses / writes: Operation counters
            - db_size_bytes: Approximate database size

        Raises:
            StorageError: If statistics query fails
        """
        try:
            with self._lock:
                cursor = self._get_connection().cursor()
                cursor.execute("""
                    SELECT
                        COUNT(*) AS total,
                        MIN(updated_at) AS oldest,
                        MAX(updated_at) AS newest
                    FROM records
                """)
                row = cursor.fetchone()

            db_size_bytes = self.db_path.stat().st_size if self.db_path.exists() else 0

            return {
                "total_records": row["total"],
                "oldest_update": row["oldest"],
                "newest_update": row["newest"],
                **self._stats,
                "db_size_bytes": db_size_bytes,
                "db_path": str(self.db_path),
            }

        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to get statistics: {e}",
                operation="statistics"
            ) from e

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug("Database connection closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return f"SQLiteRecordStore(db_path={self.db_path})"
