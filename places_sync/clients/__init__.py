"""
Clients Module

Upstream provider clients.

Components:
    - GooglePlacesClient: Async Places API client (v1 and legacy)
    - PlacesClientConfig: Client configuration
"""

from places_sync.clients.google_places import GooglePlacesClient, PlacesClientConfig

__all__ = [
    "GooglePlacesClient",
    "PlacesClientConfig",
]
