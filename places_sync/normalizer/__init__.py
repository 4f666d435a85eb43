"""
Normalizer Module

Record schemas and provider payload mapping.

Components:
    - BusinessRecord: Canonical cached listing
    - SearchQuery / SearchResponse: Search request and aggregated result
    - SyncResult / SyncStatus: Record synchronizer outcome
    - PlaceTransformer: Legacy and v1 provider payload adapter
"""

from .schemas import (
    BusinessRecord,
    GeoPoint,
    LocationBias,
    OpeningHours,
    SearchQuery,
    SearchResponse,
    SyncResult,
    SyncStatus,
)
from .transformer import PlaceTransformer

__all__ = [
    "BusinessRecord",
    "GeoPoint",
    "OpeningHours",
    "LocationBias",
    "SearchQuery",
    "SearchResponse",
    "SyncResult",
    "SyncStatus",
    "PlaceTransformer",
]
