"""
Storage Module

Persistent business record store.

Components:
    - SQLiteRecordStore: SQLite store with atomic upsert and staleness queries
"""

from places_sync.storage.record_store import SQLiteRecordStore

__all__ = [
    "SQLiteRecordStore",
]
