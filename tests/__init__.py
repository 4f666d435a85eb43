"""
Tests Package

Unit and integration tests for Places Sync.

Structure:
    - Unit tests: Backoff, throttle, staleness, store, transformer, client
    - Integration tests: Synchronizer and search orchestration over a real SQLite store
    - fixtures/: Shared provider payloads
"""

__all__ = []

TEST_DATA_DIR = "fixtures"
