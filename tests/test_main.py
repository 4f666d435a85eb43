"""
Tests for the command-line interface.
"""

import json
from unittest.mock import patch

import pytest

from places_sync.config import PlacesAPIConfig, StorageConfig
from places_sync.main import (
    EXIT_BAD_REQUEST,
    EXIT_ERROR,
    EXIT_OK,
    EXIT_UNAVAILABLE,
    EXIT_UPSTREAM,
    PlacesSyncCLI,
    exit_code_for,
)
from places_sync.orchestrator.pipeline import PlacesSyncPipeline
from places_sync.utils.exceptions import (
    AuthError,
    BadRequestError,
    InternalError,
    RecordUnavailableError,
    ServerError,
    UpstreamExhaustionError,
    UpstreamResponseError,
)
from tests.conftest import v1_details, v1_place


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep CLI runs from attaching file handlers."""
    with patch("places_sync.main.setup_logger"):
        yield


@pytest.fixture
def cli(test_settings, fake_client):
    """CLI whose pipelines use the fake client and a temporary store."""
    return PlacesSyncCLI(
        pipeline_factory=lambda _settings: PlacesSyncPipeline(test_settings, client=fake_client)
    )


class TestExitCodes:
    @pytest.mark.parametrize(
        "error, code",
        [
            (BadRequestError(), EXIT_BAD_REQUEST),
            (RecordUnavailableError("A"), EXIT_UNAVAILABLE),
            (UpstreamResponseError("bad"), EXIT_UPSTREAM),
            (UpstreamExhaustionError(), EXIT_UPSTREAM),
            (AuthError("denied"), EXIT_UPSTREAM),
            (InternalError("boom"), EXIT_ERROR),
        ],
    )
    def test_exit_code_for(self, error, code):
        assert exit_code_for(error) == code

    def test_no_command_prints_help(self, cli, capsys):
        assert cli.run([]) == EXIT_BAD_REQUEST
        assert "usage" in capsys.readouterr().out.lower()


class TestSearchCommand:
    def test_json_output(self, cli, fake_client, capsys):
        fake_client.search_results = [v1_place("A", "Alpha Plumbing")]
        fake_client.details["A"] = v1_details("A", "Alpha Plumbing")

        code = cli.run(["search", "plumbers", "Denver, CO", "--json"])

        assert code == EXIT_OK
        payload = json.loads(capsys.readouterr().out)
        assert payload["count"] == 1
        assert payload["results"][0]["phone"] == "(303) 555-0100"
        assert fake_client.closed

    def test_text_output(self, cli, fake_client, capsys):
        fake_client.search_results = [v1_place("A", "Alpha Plumbing")]
        fake_client.details["A"] = v1_details("A", "Alpha Plumbing")

        assert cli.run(["search", "plumbers", "Denver, CO"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "Alpha Plumbing" in out
        assert "enriched: 1" in out

    def test_blank_keyword_is_bad_request(self, cli, fake_client, capsys):
        code = cli.run(["search", "  ", "Denver, CO"])

        assert code == EXIT_BAD_REQUEST
        assert "bad-request" in capsys.readouterr().err
        assert fake_client.text_search_calls == []

    def test_blank_keyword_rejected_before_configuration(self, capsys):
        """An invalid query is a bad request even when no API key is configured."""
        with patch.object(PlacesAPIConfig, "API_KEY", ""):
            code = PlacesSyncCLI().run(["search", "", "Denver, CO"])

        assert code == EXIT_BAD_REQUEST
        assert "bad-request" in capsys.readouterr().err

    def test_upstream_failure(self, cli, fake_client):
        fake_client.search_results = UpstreamResponseError("INVALID_REQUEST", status="INVALID_REQUEST")

        assert cli.run(["search", "plumbers", "Denver, CO"]) == EXIT_UPSTREAM


class TestRecordCommand:
    def test_record_found(self, cli, fake_client, capsys):
        fake_client.details["A"] = v1_details("A", "Alpha Plumbing")

        assert cli.run(["record", "A"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "[refreshed]" in out
        assert "Alpha Plumbing" in out

    def test_record_unavailable(self, cli, fake_client):
        fake_client.details["A"] = ServerError("down")

        assert cli.run(["record", "A"]) == EXIT_UNAVAILABLE


class TestMaintenanceCommands:
    def test_refresh_stale(self, cli, capsys):
        assert cli.run(["refresh-stale", "--limit", "5"]) == EXIT_OK
        assert "STALE REFRESH SUMMARY" in capsys.readouterr().out

    def test_stats(self, cli, temp_db_path, capsys):
        with patch.object(StorageConfig, "DB_PATH", temp_db_path):
            assert cli.run(["stats"]) == EXIT_OK

        assert "Total Records" in capsys.readouterr().out

    def test_missing_api_key(self, capsys):
        with patch.object(PlacesAPIConfig, "API_KEY", ""):
            code = PlacesSyncCLI().run(["record", "A"])

        assert code == EXIT_ERROR
        assert "GOOGLE_PLACES_API_KEY" in capsys.readouterr().err
