"""
Orchestrator Module

Synchronization policy, request pacing, and workflow coordination.

Components:
    - BackoffExecutor: Exponential-backoff retry of provider calls
    - RequestThrottle: FIFO bounded-concurrency, minimum-spacing gate
    - StalenessEvaluator / needs_refresh: Staleness policy
    - RecordSynchronizer: Cache-or-refresh logic per record
    - SearchOrchestrator: Search with concurrent per-result enrichment
    - PlacesSyncPipeline: Fully wired synchronization layer
    - RefreshScheduler: APScheduler-based stale record refresh
"""

__all__ = [
    "BackoffExecutor",
    "RequestThrottle",
    "StalenessEvaluator",
    "needs_refresh",
    "RecordSynchronizer",
    "SearchOrchestrator",
    "PlacesSyncPipeline",
    "RefreshScheduler",
]

_MODULES = {
    "BackoffExecutor": ".backoff",
    "RequestThrottle": ".throttle",
    "StalenessEvaluator": ".staleness",
    "needs_refresh": ".staleness",
    "RecordSynchronizer": ".synchronizer",
    "SearchOrchestrator": ".search",
    "PlacesSyncPipeline": ".pipeline",
    "RefreshScheduler": ".scheduler",
}


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name in _MODULES:
        import importlib
        module = importlib.import_module(_MODULES[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
