# Copyright (c) Syntropy Systems
"""Tests for the countwatch HTTP client."""

from __future__ import annotations

import httpx
import pytest

from countwatch.client import CountwatchClient, CountwatchClientError


def _outcome(table: str, count: int | None, is_valid: bool, reason: str | None = None) -> dict[str, object]:
    return {
        "check_set_id": "risk",
        "table_name": table,
        "current_count": count,
        "baseline_count": 100,
        "expected_minimum": 90,
        "tolerance_ratio": 0.9,
        "is_valid": is_valid,
        "reason": reason,
        "query_duration_ms": 4,
        "observed_at": "2026-01-01T00:00:00.000Z",
    }


def _client(handler: httpx.MockTransport) -> CountwatchClient:
    return CountwatchClient("http://monitor:8080/", transport=handler)


class TestRunCheckSet:
    """Tests for CountwatchClient.run_check_set."""

    def test_valid_response(self) -> None:
        """Test a 200 response is parsed into outcomes."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "check_set_id": "risk",
                    "overall_valid": True,
                    "outcomes": [_outcome("risks", 95, True)],
                },
            )

        with _client(httpx.MockTransport(handler)) as client:
            response = client.run_check_set("risk")

        assert str(seen[0].url) == "http://monitor:8080/check/risk"
        assert response.overall_valid
        assert response.outcomes[0].current_count == 95
        assert response.outcomes[0].expected_minimum == 90

    def test_invalid_response_is_not_an_error(self) -> None:
        """Test a 500 carrying outcomes is returned, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                500,
                json={
                    "check_set_id": "risk",
                    "overall_valid": False,
                    "outcomes": [
                        _outcome(
                            "risks",
                            85,
                            False,
                            "COUNT_BELOW_EXPECTED: Last=100, Expected=90",
                        ),
                        _outcome("risk_actions", None, False, "SQL_ERROR: relation does not exist"),
                    ],
                },
            )

        with _client(httpx.MockTransport(handler)) as client:
            response = client.run_check_set("risk")

        assert not response.overall_valid
        assert response.outcomes[0].reason == "COUNT_BELOW_EXPECTED: Last=100, Expected=90"
        assert response.outcomes[1].failed

    def test_unknown_check_set(self) -> None:
        """Test a 404 raises with the server's detail and status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"detail": "No such check-set: nope"})

        with _client(httpx.MockTransport(handler)) as client, pytest.raises(CountwatchClientError) as exc_info:
            _ = client.run_check_set("nope")

        assert exc_info.value.status_code == 404
        assert "No such check-set: nope" in str(exc_info.value)

    def test_unexpected_500_body(self) -> None:
        """Test a 500 without outcomes is reported as a bad response."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="Internal Server Error")

        with _client(httpx.MockTransport(handler)) as client, pytest.raises(CountwatchClientError, match="Unexpected response"):
            _ = client.run_check_set("risk")

    def test_connection_error(self) -> None:
        """Test transport failures become CountwatchClientError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(httpx.MockTransport(handler)) as client, pytest.raises(CountwatchClientError, match="Connection error"):
            _ = client.run_check_set("risk")


class TestReadEndpoints:
    """Tests for the list, history, and health calls."""

    def test_list_check_sets(self) -> None:
        """Test check-sets are parsed."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/check-sets"
            return httpx.Response(200, json={"check_sets": [{"name": "risk", "tables": ["risks"]}]})

        with _client(httpx.MockTransport(handler)) as client:
            response = client.list_check_sets()

        assert response.check_sets[0].name == "risk"
        assert response.check_sets[0].tables == ["risks"]

    def test_get_history_sends_filters(self) -> None:
        """Test table and limit are sent as query parameters."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/history/risk"
            assert request.url.params["table"] == "risks"
            assert request.url.params["limit"] == "5"
            return httpx.Response(
                200,
                json={
                    "records": [
                        {
                            "seq": 7,
                            "check_set_id": "risk",
                            "table_name": "risks",
                            "record_count": 95,
                            "is_valid": True,
                            "reason": None,
                            "stored_at": "2026-01-01T00:00:00.000Z",
                        }
                    ],
                    "count": 1,
                },
            )

        with _client(httpx.MockTransport(handler)) as client:
            response = client.get_history("risk", table_name="risks", limit=5)

        assert response.count == 1
        assert response.records[0].record_count == 95

    def test_health_not_ready(self) -> None:
        """Test health is parsed when the store is not ready."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "starting", "store_ready": False})

        with _client(httpx.MockTransport(handler)) as client:
            health = client.health()

        assert health.status == "starting"
        assert not health.store_ready
