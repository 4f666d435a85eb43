"""
Places Sync - Main Package

Synchronization and caching layer for third-party business listings.

Modules:
    clients: Async HTTP client for the places-search provider
    normalizer: Record schemas and provider payload mapping
    orchestrator: Backoff, throttling, staleness, record sync and search fan-out
    storage: SQLite-backed record persistence
    utils: Logging and exception hierarchy
"""

__version__ = "0.1.0"
__author__ = "Places Sync Team"

__all__ = [
    "__version__",
    "__author__",
]
