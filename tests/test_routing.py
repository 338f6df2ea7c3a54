"""Google Maps routing adapter against a mocked HTTP transport."""

from __future__ import annotations

import httpx
import pytest

from src.domain.entities import Location
from src.domain.exceptions import ProviderUnavailable
from src.infrastructure.routing import GoogleMapsRoutingProvider

ORIGIN = Location(60.1699, 24.9384)
DESTINATION = Location(61.4978, 23.7610)


def _provider(handler) -> GoogleMapsRoutingProvider:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://maps.example.test/maps/api",
    )
    return GoogleMapsRoutingProvider("test-key", client=client)


def _leg(distance=178_400, duration=8_100, traffic=None):
    leg = {"distance": {"value": distance}, "duration": {"value": duration}}
    if traffic is not None:
        leg["duration_in_traffic"] = {"value": traffic}
    return {"status": "OK", "routes": [{"legs": [leg]}]}


class TestGoogleMapsRoutingProvider:
    @pytest.mark.asyncio
    async def test_route(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            return httpx.Response(200, json=_leg())

        route = await _provider(handler).route(ORIGIN, DESTINATION)

        assert route.distance_m == 178_400
        assert route.duration_s == 8_100
        assert seen["url"].path.endswith("/directions/json")
        assert seen["url"].params["origin"] == "60.1699,24.9384"
        assert seen["url"].params["key"] == "test-key"

    @pytest.mark.asyncio
    async def test_prefers_traffic_duration(self):
        provider = _provider(lambda r: httpx.Response(200, json=_leg(traffic=9_000)))
        assert (await provider.route(ORIGIN, DESTINATION)).duration_s == 9_000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="boom"),
            httpx.Response(200, json={"status": "OVER_QUERY_LIMIT", "routes": []}),
            httpx.Response(200, json={"status": "ZERO_RESULTS", "routes": []}),
            httpx.Response(200, json={"status": "OK", "routes": [{"legs": []}]}),
            httpx.Response(200, text="not json"),
        ],
    )
    async def test_failures_raise_provider_unavailable(self, response):
        provider = _provider(lambda r: response)
        with pytest.raises(ProviderUnavailable):
            await provider.route(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(ProviderUnavailable):
            await _provider(handler).route(ORIGIN, DESTINATION)
