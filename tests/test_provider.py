"""Tests for the Electricity Maps client against a mocked HTTP transport."""

from datetime import timedelta

import httpx
import pytest

from fakes import FIXED_NOW, FakeCache
from greenroute.schemas import RoutingRequest
from greenroute.services.electricity_maps import ElectricityMapsClient
from greenroute.services.routing import RoutingScorer


def _client(handler, api_key="test-key") -> ElectricityMapsClient:
    return ElectricityMapsClient(
        base_url="https://provider.test",
        api_key=api_key,
        default_intensity=400.0,
        transport=httpx.MockTransport(handler),
    )


def _fail(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "unavailable"})


class TestCurrent:
    async def test_latest_reading(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["zone"] = request.url.params["zone"]
            seen["token"] = request.headers["auth-token"]
            return httpx.Response(
                200,
                json={"zone": "DE", "carbonIntensity": 250, "datetime": "2026-10-14T12:00:00Z"},
            )

        reading = await _client(handler).current("DE")

        assert seen == {"path": "/v3/carbon-intensity/latest", "zone": "DE", "token": "test-key"}
        assert reading.region == "DE"
        assert reading.intensity == 250
        assert reading.timestamp == FIXED_NOW

    async def test_http_error_returns_none(self):
        assert await _client(_fail).current("DE") is None

    async def test_missing_value_returns_none(self):
        def handler(request):
            return httpx.Response(200, json={"zone": "DE", "carbonIntensity": None})

        assert await _client(handler).current("DE") is None

    @pytest.mark.parametrize(
        "body",
        [
            {"text": "<html>maintenance</html>"},
            {"json": {"zone": "DE", "carbonIntensity": -5, "datetime": "2026-10-14T12:00:00Z"}},
            {"json": [{"carbonIntensity": 250}]},
        ],
        ids=["non-json", "negative-intensity", "not-an-object"],
    )
    async def test_malformed_payload_returns_none(self, body):
        client = _client(lambda request: httpx.Response(200, **body))
        assert await client.current("DE") is None

    async def test_unconfigured_uses_default(self):
        client = _client(_fail, api_key=None)
        reading = await client.current("FR")
        assert client.configured is False
        assert reading.intensity == 400.0
        assert reading.region == "FR"


class TestHistory:
    async def test_rows_without_values_are_skipped(self):
        def handler(request):
            assert request.url.path == "/v3/carbon-intensity/history"
            return httpx.Response(
                200,
                json={
                    "zone": "DE",
                    "history": [
                        {"carbonIntensity": 300, "datetime": "2026-10-14T10:00:00Z"},
                        {"carbonIntensity": None, "datetime": "2026-10-14T11:00:00Z"},
                        {"carbonIntensity": 280, "datetime": "2026-10-14T12:00:00Z"},
                    ],
                },
            )

        points = await _client(handler).history("DE", FIXED_NOW - timedelta(hours=2), FIXED_NOW)
        assert [p.intensity for p in points] == [300, 280]
        assert all(p.region == "DE" for p in points)

    async def test_http_error_propagates(self):
        with pytest.raises(httpx.HTTPStatusError):
            await _client(_fail).history("DE", FIXED_NOW - timedelta(hours=1), FIXED_NOW)

    async def test_unconfigured_returns_nothing(self):
        assert await _client(_fail, api_key=None).history("DE", FIXED_NOW, FIXED_NOW) == []


class TestNativeForecast:
    async def test_forecast_points(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "zone": "FR",
                    "forecast": [
                        {"carbonIntensity": 60, "datetime": "2026-10-14T13:00:00Z"},
                        {"carbonIntensity": 55, "datetime": "2026-10-14T14:00:00Z"},
                    ],
                },
            )

        points = await _client(handler).native_forecast("FR")
        assert [p.intensity for p in points] == [60, 55]

    async def test_http_error_returns_empty(self):
        assert await _client(_fail).native_forecast("FR") == []


async def test_malformed_reading_routes_with_default_intensity():
    client = _client(lambda request: httpx.Response(200, text="not json"))
    scorer = RoutingScorer(client, FakeCache(), default_intensity=400.0)

    result = await scorer.route_green(RoutingRequest(candidate_regions=["DE"]))
    assert result.selected_region == "DE"
    assert result.intensity == 400.0
