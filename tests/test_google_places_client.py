"""
Unit tests for the Google Places API client.
"""

import asyncio
import json
from typing import Any, Optional

import aiohttp
import pytest

from places_sync.clients.google_places import (
    V1_SEARCH_FIELD_MASK,
    GooglePlacesClient,
    PlacesClientConfig,
)
from places_sync.config import SyncSettings
from places_sync.normalizer.schemas import LocationBias
from places_sync.utils.exceptions import (
    APIError,
    AuthError,
    RateLimitError,
    ServerError,
    UpstreamResponseError,
)
from tests.fixtures import load_fixture


class FakeResponse:
    def __init__(self, status: int, body: str, headers: Optional[dict] = None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def text(self) -> str:
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records requests and replays queued responses or errors."""

    def __init__(self, *responses: Any):
        self._responses = list(responses)
        self.requests: list[dict] = []
        self.closed = False

    def request(self, method, url, params=None, json=None, headers=None):
        self.requests.append(
            {"method": method, "url": url, "params": params, "json": json, "headers": headers}
        )
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        self.closed = True


def json_response(payload: Any, status: int = 200, headers: Optional[dict] = None) -> FakeResponse:
    return FakeResponse(status, json.dumps(payload), headers)


@pytest.fixture
def v1_config():
    return PlacesClientConfig(api_key="test-key", timeout=5)


@pytest.fixture
def legacy_config():
    return PlacesClientConfig(api_key="test-key", api_version="legacy", timeout=5)


def make_client(config: PlacesClientConfig, *responses: Any) -> GooglePlacesClient:
    client = GooglePlacesClient(config)
    client._session = FakeSession(*responses)
    return client


class TestClientConfig:
    def test_from_settings(self):
        settings = SyncSettings(api_key="k", api_version="legacy", language_code="es", request_timeout=3.0)
        config = PlacesClientConfig.from_settings(settings)

        assert config.api_key == "k"
        assert config.is_legacy
        assert config.language_code == "es"
        assert config.timeout == 3.0

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes_session(self, v1_config):
        async with GooglePlacesClient(v1_config) as client:
            assert client._session is not None
            assert not client._session.closed
        assert client._session.closed


class TestV1TextSearch:
    """Tests for places:searchText."""

    @pytest.mark.asyncio
    async def test_returns_places_and_sends_headers(self, v1_config):
        body = load_fixture("v1_search_response.json")
        client = make_client(v1_config, FakeResponse(200, body))
        bias = LocationBias(latitude=39.7392, longitude=-104.9903, radius_meters=50000)

        places = await client.text_search("plumbers in Denver, CO", bias)

        assert [p["id"] for p in places] == ["ChIJv1alpha", "ChIJv1bravo"]
        request = client._session.requests[0]
        assert request["method"] == "POST"
        assert request["url"].endswith("/places:searchText")
        assert request["headers"]["X-Goog-Api-Key"] == "test-key"
        assert request["headers"]["X-Goog-FieldMask"] == V1_SEARCH_FIELD_MASK
        assert request["json"]["textQuery"] == "plumbers in Denver, CO"
        assert request["json"]["locationBias"]["circle"]["center"]["latitude"] == 39.7392
        assert client.get_stats()["text_searches"] == 1

    @pytest.mark.asyncio
    async def test_empty_object_is_response_error(self, v1_config):
        client = make_client(v1_config, json_response({}))

        with pytest.raises(UpstreamResponseError):
            await client.text_search("plumbers in Denver, CO")

    @pytest.mark.asyncio
    async def test_empty_places_list(self, v1_config):
        client = make_client(v1_config, json_response({"places": []}))
        assert await client.text_search("zzz in Nowhere") == []

    @pytest.mark.asyncio
    async def test_missing_places_is_response_error(self, v1_config):
        client = make_client(v1_config, json_response({"nextPageToken": "abc"}))

        with pytest.raises(UpstreamResponseError):
            await client.text_search("plumbers in Denver, CO")
        assert client.get_stats()["errors"] == 1


class TestLegacyTextSearch:
    """Tests for the legacy textsearch endpoint."""

    @pytest.mark.asyncio
    async def test_ok_results(self, legacy_config):
        client = make_client(legacy_config, FakeResponse(200, load_fixture("legacy_search_response.json")))

        results = await client.text_search("plumbers in Denver, CO")

        assert results[0]["place_id"] == "ChIJlegacyalpha"
        request = client._session.requests[0]
        assert request["method"] == "GET"
        assert request["params"]["query"] == "plumbers in Denver, CO"
        assert request["params"]["key"] == "test-key"

    @pytest.mark.asyncio
    async def test_zero_results(self, legacy_config):
        client = make_client(legacy_config, json_response({"results": [], "status": "ZERO_RESULTS"}))
        assert await client.text_search("zzz in Nowhere") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type",
        [
            ("OVER_QUERY_LIMIT", RateLimitError),
            ("REQUEST_DENIED", AuthError),
            ("UNKNOWN_ERROR", ServerError),
            ("INVALID_REQUEST", UpstreamResponseError),
        ],
    )
    async def test_status_mapping(self, legacy_config, status, error_type):
        client = make_client(legacy_config, json_response({"results": [], "status": status}))

        with pytest.raises(error_type):
            await client.text_search("plumbers in Denver, CO")

    @pytest.mark.asyncio
    async def test_missing_results_is_response_error(self, legacy_config):
        client = make_client(legacy_config, json_response({"status": "OK"}))

        with pytest.raises(UpstreamResponseError):
            await client.text_search("plumbers in Denver, CO")


class TestHttpErrorMapping:
    """Tests for HTTP status and transport failures."""

    @pytest.mark.asyncio
    async def test_rate_limit(self, v1_config):
        client = make_client(v1_config, FakeResponse(429, "slow down", {"Retry-After": "7"}))

        with pytest.raises(RateLimitError) as exc_info:
            await client.text_search("q")
        assert exc_info.value.retry_after == 7

    @pytest.mark.asyncio
    async def test_server_error(self, v1_config):
        client = make_client(v1_config, FakeResponse(503, "unavailable"))

        with pytest.raises(ServerError) as exc_info:
            await client.place_details("A")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_error(self, v1_config, status):
        client = make_client(v1_config, FakeResponse(status, "denied"))

        with pytest.raises(AuthError):
            await client.place_details("A")

    @pytest.mark.asyncio
    async def test_other_client_error_is_response_error(self, v1_config):
        client = make_client(v1_config, FakeResponse(404, "not found"))

        with pytest.raises(UpstreamResponseError) as exc_info:
            await client.place_details("missing")
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_invalid_json(self, v1_config):
        client = make_client(v1_config, FakeResponse(200, "<html>oops</html>"))

        with pytest.raises(UpstreamResponseError):
            await client.text_search("q")

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable_api_error(self, legacy_config):
        client = make_client(legacy_config, aiohttp.ClientConnectionError("reset"))

        with pytest.raises(APIError) as exc_info:
            await client.text_search("q")

        error = exc_info.value
        assert type(error) is APIError
        assert "key" not in (error.request_params or {})

    @pytest.mark.asyncio
    async def test_timeout_is_api_error(self, v1_config):
        client = make_client(v1_config, asyncio.TimeoutError())

        with pytest.raises(APIError):
            await client.place_details("A")


class TestPlaceDetails:
    """Tests for details lookups."""

    @pytest.mark.asyncio
    async def test_v1_details(self, v1_config):
        client = make_client(v1_config, FakeResponse(200, load_fixture("v1_details_response.json")))

        details = await client.place_details("ChIJv1alpha")

        assert details["websiteUri"] == "https://alphaplumbing.example/"
        request = client._session.requests[0]
        assert request["url"].endswith("/places/ChIJv1alpha")
        assert "websiteUri" in request["headers"]["X-Goog-FieldMask"]
        assert client.get_stats()["detail_lookups"] == 1

    @pytest.mark.asyncio
    async def test_legacy_details_unwraps_result(self, legacy_config):
        client = make_client(legacy_config, FakeResponse(200, load_fixture("legacy_details_response.json")))

        details = await client.place_details("ChIJlegacyalpha")

        assert details["formatted_phone_number"] == "(303) 555-0142"
        assert client._session.requests[0]["params"]["place_id"] == "ChIJlegacyalpha"

    @pytest.mark.asyncio
    async def test_legacy_not_found(self, legacy_config):
        client = make_client(legacy_config, json_response({"status": "NOT_FOUND"}))

        with pytest.raises(UpstreamResponseError) as exc_info:
            await client.place_details("gone")
        assert exc_info.value.status == "NOT_FOUND"
