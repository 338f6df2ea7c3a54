"""Fare estimation with routing, geodesic fallback and surge."""

import dataclasses
import logging
from unittest.mock import AsyncMock

import pytest

from src.domain.entities import Route
from src.domain.exceptions import InvalidTenant, ProviderUnavailable
from src.domain.pricing import FareCalculator
from src.services.fare_estimator import ACTUAL, GEODESIC, PROVIDER, FareEstimator
from tests.fakes import HELSINKI_CENTRE, TAMPERE_CENTRE, TENANT_PRICING, nearby


def _routing(route=None, error=None):
    routing = AsyncMock()
    routing.route = AsyncMock(return_value=route, side_effect=error)
    return routing


class TestRouting:
    @pytest.mark.asyncio
    async def test_uses_provider_route(self):
        estimator = FareEstimator(
            FareCalculator(), routing=_routing(Route(distance_m=2_000, duration_s=360))
        )
        fare = await estimator.estimate(
            TENANT_PRICING, HELSINKI_CENTRE, nearby(HELSINKI_CENTRE, 1_500), "standard"
        )
        assert fare.route_source == PROVIDER
        assert fare.total == 14.90
        assert fare.vat_amount == 1.77

    @pytest.mark.asyncio
    async def test_helsinki_to_tampere_without_provider(self, estimator):
        fare = await estimator.estimate(
            TENANT_PRICING, HELSINKI_CENTRE, TAMPERE_CENTRE, "standard"
        )
        assert fare.route_source == GEODESIC
        assert 150_000 < fare.estimated_distance_m < 190_000
        # 30 km/h: 120 s per km
        assert fare.estimated_duration_s == pytest.approx(
            fare.estimated_distance_m * 0.12, abs=1
        )
        assert fare.total > TENANT_PRICING.minimum_fare

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back_silently(self, caplog):
        estimator = FareEstimator(
            FareCalculator(), routing=_routing(error=ProviderUnavailable("quota"))
        )
        with caplog.at_level(logging.WARNING):
            fare = await estimator.estimate(
                TENANT_PRICING, HELSINKI_CENTRE, TAMPERE_CENTRE, "standard"
            )
        assert fare.route_source == GEODESIC
        assert "geodesic fallback" in caplog.text

    @pytest.mark.asyncio
    async def test_fallback_matches_no_provider(self, estimator):
        failing = FareEstimator(
            FareCalculator(0.135), routing=_routing(error=ProviderUnavailable())
        )
        a = await failing.estimate(TENANT_PRICING, HELSINKI_CENTRE, TAMPERE_CENTRE, "xl")
        b = await estimator.estimate(TENANT_PRICING, HELSINKI_CENTRE, TAMPERE_CENTRE, "xl")
        assert a == b


class TestTenantAndSurge:
    @pytest.mark.asyncio
    async def test_missing_config(self, estimator):
        with pytest.raises(InvalidTenant):
            await estimator.estimate(None, HELSINKI_CENTRE, TAMPERE_CENTRE, "standard")

    @pytest.mark.asyncio
    async def test_invalid_config(self, estimator):
        bad = dataclasses.replace(TENANT_PRICING, booking_fee=-1)
        with pytest.raises(InvalidTenant):
            await estimator.estimate(bad, HELSINKI_CENTRE, TAMPERE_CENTRE, "standard")

    @pytest.mark.asyncio
    async def test_surge_ignored_when_tenant_disabled(self):
        surge = AsyncMock()
        surge.multiplier = AsyncMock(return_value=2.0)
        estimator = FareEstimator(FareCalculator(), surge=surge)

        fare = await estimator.estimate(
            TENANT_PRICING, HELSINKI_CENTRE, nearby(HELSINKI_CENTRE, 2_000), "standard"
        )
        assert fare.surge_multiplier == 1.0
        surge.multiplier.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_surge_applied_when_enabled(self):
        surge = AsyncMock()
        surge.multiplier = AsyncMock(return_value=2.0)
        estimator = FareEstimator(
            FareCalculator(),
            routing=_routing(Route(distance_m=2_000, duration_s=360)),
            surge=surge,
        )
        config = dataclasses.replace(TENANT_PRICING, surge_enabled=True)

        fare = await estimator.estimate(
            config, HELSINKI_CENTRE, nearby(HELSINKI_CENTRE, 2_000), "standard"
        )
        assert fare.surge_multiplier == 2.0
        assert fare.surge_amount == 13.90
        assert fare.total == 28.80
        surge.multiplier.assert_awaited_once_with(
            1, HELSINKI_CENTRE.latitude, HELSINKI_CENTRE.longitude
        )


def test_final_fare_uses_actual_metrics(estimator):
    fare = estimator.final_fare(TENANT_PRICING, 2_000, 360, "standard", 1.0)
    assert fare.route_source == ACTUAL
    assert fare.total == 14.90
