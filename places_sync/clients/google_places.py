"""
Google Places API client for Places Sync.

Asynchronous HTTP client for text search and place details lookups
against both the Places API (v1) and the legacy Places web service.
Each method performs a single attempt; retries and pacing are applied
by the orchestrator layer.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from ..config import SyncSettings
from ..normalizer.schemas import LocationBias
from ..utils.exceptions import (
    APIError,
    AuthError,
    RateLimitError,
    ServerError,
    UpstreamResponseError,
)


logger = logging.getLogger(__name__)


V1_BASE_URL = "https://places.googleapis.com/v1"
LEGACY_BASE_URL = "https://maps.googleapis.com/maps/api/place"

V1_SEARCH_FIELD_MASK = ",".join(
    f"places.{name}"
    for name in (
        "id",
        "displayName",
        "formattedAddress",
        "location",
        "rating",
        "userRatingCount",
        "types",
        "businessStatus",
    )
)

V1_DETAILS_FIELD_MASK = ",".join(
    (
        "id",
        "displayName",
        "formattedAddress",
        "location",
        "rating",
        "userRatingCount",
        "types",
        "businessStatus",
        "nationalPhoneNumber",
        "internationalPhoneNumber",
        "websiteUri",
        "currentOpeningHours",
    )
)

LEGACY_DETAILS_FIELDS = ",".join(
    (
        "place_id",
        "name",
        "rating",
        "user_ratings_total",
        "formatted_address",
        "geometry",
        "formatted_phone_number",
        "website",
        "business_status",
        "types",
        "opening_hours",
    )
)

# Legacy web service statuses that carry usable data
LEGACY_OK_STATUSES = ("OK", "ZERO_RESULTS")


@dataclass
class PlacesClientConfig:
    """Configuration for the Google Places client.

    Attributes:
        api_key: Provider API key
        api_version: "v1" or "legacy"
        language_code: Language requested for results
        max_result_count: Maximum text-search results (v1 only)
        timeout: Request timeout in seconds
        v1_base_url: Places API base URL
        legacy_base_url: Legacy web service base URL
    """

    api_key: str
    api_version: str = "v1"
    language_code: str = "en"
    max_result_count: int = 20
    timeout: float = 10.0
    v1_base_url: str = V1_BASE_URL
    legacy_base_url: str = LEGACY_BASE_URL

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> "PlacesClientConfig":
        """Create configuration from process settings."""
        return cls(
            api_key=settings.api_key,
            api_version=settings.api_version,
            language_code=settings.language_code,
            max_result_count=settings.max_result_count,
            timeout=settings.request_timeout,
        )

    @property
    def is_legacy(self) -> bool:
        return self.api_version == "legacy"


class GooglePlacesClient:
    """Asynchronous Google Places client.

    Features:
    - Async HTTP with aiohttp
    - v1 (places:searchText, places/{id}) and legacy (textsearch, details) endpoints
    - Provider status mapped onto the shared error taxonomy
    - Per-call timeout

    Example:
        ```python
        from places_sync.clients.google_places import GooglePlacesClient, PlacesClientConfig

        config = PlacesClientConfig(api_key="...")

        async with GooglePlacesClient(config) as client:
            places = await client.text_search("plumbers in Denver, CO")
            details = await client.place_details(places[0]["id"])
        ```
    """

    def __init__(self, config: PlacesClientConfig):
        """Initialize the client.

        Args:
            config: Client configuration
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._stats = {
            "requests_made": 0,
            "text_searches": 0,
            "detail_lookups": 0,
            "errors": 0,
        }

        logger.info(
            "Initialized GooglePlacesClient",
            extra={
                "api_version": config.api_version,
                "timeout": config.timeout,
            },
        )

    async def __aenter__(self) -> "GooglePlacesClient":
        """Enter async context manager."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session is initialized."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            logger.debug("Created new aiohttp session")

    async def close(self) -> None:
        """Close aiohttp session and cleanup resources."""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("Closed aiohttp session")

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Make a single HTTP request and decode its JSON body.

        Args:
            method: HTTP method
            url: Endpoint URL
            params: Query string parameters
            body: JSON request body
            headers: Extra request headers

        Returns:
            Decoded JSON object

        Raises:
            AuthError: Authentication failed (401/403)
            RateLimitError: Rate limit exceeded (429)
            ServerError: Server error (5xx)
            UpstreamResponseError: Other 4xx, or a body that is not a JSON object
            APIError: Network failure or timeout
        """
        await self._ensure_session()
        self._stats["requests_made"] += 1

        # Never log the key
        safe_params = {k: v for k, v in (params or {}).items() if k != "key"}

        logger.debug(
            "Making Places API request",
            extra={"method": method, "endpoint": url, "params": safe_params},
        )

        try:
            async with self._session.request(
                method,
                url,
                params=params,
                json=body,
                headers=headers,
            ) as response:
                text = await response.text()

                if response.status in (401, 403):
                    logger.error(
                        "Authentication failed",
                        extra={"status": response.status, "endpoint": url},
                    )
                    raise AuthError(
                        f"Authentication failed: {response.status}",
                        endpoint=url,
                        status_code=response.status,
                        response_body=text,
                        request_params=safe_params,
                    )

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    logger.warning(
                        "Rate limit exceeded",
                        extra={"endpoint": url, "retry_after": retry_after},
                    )
                    raise RateLimitError(
                        "Rate limit exceeded",
                        endpoint=url,
                        status_code=response.status,
                        retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                        response_body=text,
                        request_params=safe_params,
                    )

                if response.status >= 500:
                    logger.error(
                        "Server error",
                        extra={"status": response.status, "endpoint": url},
                    )
                    raise ServerError(
                        f"Server error: {response.status}",
                        endpoint=url,
                        status_code=response.status,
                        response_body=text,
                        request_params=safe_params,
                    )

                if response.status >= 400:
                    logger.error(
                        "Client error",
                        extra={"status": response.status, "endpoint": url},
                    )
                    raise UpstreamResponseError(
                        f"Request rejected: {response.status}",
                        endpoint=url,
                        status=response.status,
                        payload=text,
                    )

        except aiohttp.ClientError as e:
            logger.error(
                "HTTP client error",
                extra={"endpoint": url, "error": str(e)},
            )
            raise APIError(
                f"HTTP client error: {str(e)}",
                endpoint=url,
                request_params=safe_params,
            ) from e

        except asyncio.TimeoutError as e:
            logger.error("Request timed out", extra={"endpoint": url})
            raise APIError(
                f"Request timed out after {self.config.timeout}s",
                endpoint=url,
                request_params=safe_params,
            ) from e

        try:
            payload = json.loads(text) if text else {}
        except ValueError as e:
            raise UpstreamResponseError(
                "Response body is not valid JSON",
                endpoint=url,
                status=response.status,
                payload=text,
            ) from e

        if not isinstance(payload, dict):
            raise UpstreamResponseError(
                "Response body is not a JSON object",
                endpoint=url,
                status=response.status,
                payload=text,
            )

        return payload

    def _check_legacy_status(self, payload: dict[str, Any], endpoint: str) -> None:
        """Map a legacy web service ``status`` onto the error taxonomy.

        Raises:
            RateLimitError: OVER_QUERY_LIMIT
            AuthError: REQUEST_DENIED
            ServerError: UNKNOWN_ERROR (transient server-side failure)
            UpstreamResponseError: Any other non-success status
        """
        status = payload.get("status")
        if status in LEGACY_OK_STATUSES:
            return

        message = payload.get("error_message") or f"Places API status {status}"

        if status == "OVER_QUERY_LIMIT":
            raise RateLimitError(message, endpoint=endpoint)
        if status == "REQUEST_DENIED":
            raise AuthError(message, endpoint=endpoint)
        if status == "UNKNOWN_ERROR":
            raise ServerError(message, endpoint=endpoint)

        raise UpstreamResponseError(
            message,
            endpoint=endpoint,
            status=status,
            payload=json.dumps(payload),
        )

    async def text_search(
        self,
        query: str,
        location_bias: Optional[LocationBias] = None,
    ) -> list[dict[str, Any]]:
        """Run a text search and return the raw ranked results.

        Args:
            query: Free-text query, e.g. "plumbers in Denver, CO"
            location_bias: Optional circle biasing results toward an area

        Returns:
            Raw place objects in provider ranking order

        Raises:
            UpstreamResponseError: Non-success status or missing results collection
            APIError: Transport-level failure (see ``_request_json``)
        """
        self._stats["text_searches"] += 1

        try:
            if self.config.is_legacy:
                return await self._legacy_text_search(query, location_bias)
            return await self._v1_text_search(query, location_bias)
        except Exception:
            self._stats["errors"] += 1
            raise

    async def _v1_text_search(
        self,
        query: str,
        location_bias: Optional[LocationBias],
    ) -> list[dict[str, Any]]:
        endpoint = f"{self.config.v1_base_url}/places:searchText"
        body: dict[str, Any] = {
            "textQuery": query,
            "languageCode": self.config.language_code,
            "maxResultCount": self.config.max_result_count,
        }
        if location_bias is not None:
            body["locationBias"] = {
                "circle": {
                    "center": {
                        "latitude": location_bias.latitude,
                        "longitude": location_bias.longitude,
                    },
                    "radius": location_bias.radius_meters,
                }
            }

        payload = await self._request_json(
            "POST",
            endpoint,
            body=body,
            headers={
                "Content-Type": "application/json",
                "X-Goog-Api-Key": self.config.api_key,
                "X-Goog-FieldMask": V1_SEARCH_FIELD_MASK,
            },
        )

        places = payload.get("places")
        if not isinstance(places, list):
            raise UpstreamResponseError(
                "Invalid response format from Places API: missing places",
                endpoint=endpoint,
                payload=json.dumps(payload),
            )

        logger.info(
            "Text search completed",
            extra={"query": query, "result_count": len(places)},
        )
        return places

    async def _legacy_text_search(
        self,
        query: str,
        location_bias: Optional[LocationBias],
    ) -> list[dict[str, Any]]:
        endpoint = f"{self.config.legacy_base_url}/textsearch/json"
        params: dict[str, Any] = {
            "query": query,
            "language": self.config.language_code,
            "key": self.config.api_key,
        }
        if location_bias is not None:
            params["location"] = f"{location_bias.latitude},{location_bias.longitude}"
            params["radius"] = int(location_bias.radius_meters)

        payload = await self._request_json("GET", endpoint, params=params)
        self._check_legacy_status(payload, endpoint)

        results = payload.get("results")
        if not isinstance(results, list):
            raise UpstreamResponseError(
                "Invalid response format from Places API: missing results",
                endpoint=endpoint,
                status=payload.get("status"),
                payload=json.dumps(payload),
            )

        logger.info(
            "Text search completed",
            extra={"query": query, "result_count": len(results)},
        )
        return results

    async def place_details(self, place_id: str) -> dict[str, Any]:
        """Fetch the full details object for one place.

        Args:
            place_id: Provider place identifier

        Returns:
            Raw place object

        Raises:
            UpstreamResponseError: Non-success status or missing result object
            APIError: Transport-level failure (see ``_request_json``)
        """
        self._stats["detail_lookups"] += 1

        try:
            if self.config.is_legacy:
                return await self._legacy_place_details(place_id)
            return await self._v1_place_details(place_id)
        except Exception:
            self._stats["errors"] += 1
            raise

    async def _v1_place_details(self, place_id: str) -> dict[str, Any]:
        endpoint = f"{self.config.v1_base_url}/places/{place_id}"
        payload = await self._request_json(
            "GET",
            endpoint,
            params={"languageCode": self.config.language_code},
            headers={
                "X-Goog-Api-Key": self.config.api_key,
                "X-Goog-FieldMask": V1_DETAILS_FIELD_MASK,
            },
        )

        if not payload:
            raise UpstreamResponseError(
                "Empty details response from Places API",
                endpoint=endpoint,
            )

        logger.debug("Fetched place details", extra={"place_id": place_id})
        return payload

    async def _legacy_place_details(self, place_id: str) -> dict[str, Any]:
        endpoint = f"{self.config.legacy_base_url}/details/json"
        payload = await self._request_json(
            "GET",
            endpoint,
            params={
                "place_id": place_id,
                "fields": LEGACY_DETAILS_FIELDS,
                "language": self.config.language_code,
                "key": self.config.api_key,
            },
        )
        self._check_legacy_status(payload, endpoint)

        result = payload.get("result")
        if not isinstance(result, dict):
            raise UpstreamResponseError(
                "Invalid response format from Places API: missing result",
                endpoint=endpoint,
                status=payload.get("status"),
                payload=json.dumps(payload),
            )

        logger.debug("Fetched place details", extra={"place_id": place_id})
        return result

    def get_stats(self) -> dict[str, Any]:
        """Get client statistics.

        Returns:
            Dictionary with request counters
        """
        return dict(self._stats)
