"""
Road routing via the Google Maps Directions API.

Every failure mode (transport error, HTTP error, API status other than
``OK``, empty route list, malformed body) is raised as
``ProviderUnavailable``; the fare estimator owns the geodesic fallback.
"""

from __future__ import annotations

from typing import Optional

import httpx

from src.domain.entities import Location, Route
from src.domain.exceptions import ProviderUnavailable


class GoogleMapsRoutingProvider:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api",
        timeout_seconds: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds
        )

    async def route(self, origin: Location, destination: Location) -> Route:
        params = {
            "origin": f"{origin.latitude},{origin.longitude}",
            "destination": f"{destination.latitude},{destination.longitude}",
            "key": self.api_key,
            "mode": "driving",
            "departure_time": "now",
        }
        try:
            response = await self.client.get("/directions/json", params=params)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderUnavailable(f"Directions request failed: {exc}") from exc

        status = body.get("status")
        routes = body.get("routes") or []
        if status != "OK" or not routes:
            raise ProviderUnavailable(f"Directions returned status {status!r}")

        try:
            leg = routes[0]["legs"][0]
            duration = leg.get("duration_in_traffic") or leg["duration"]
            return Route(
                distance_m=float(leg["distance"]["value"]),
                duration_s=int(duration["value"]),
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderUnavailable("Malformed directions response") from exc

    async def aclose(self) -> None:
        await self.client.aclose()
