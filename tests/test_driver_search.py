"""Nearby-driver search: filtering, ETA and ranking."""

import pytest

from src.services.driver_search import NearbyDriverSearch
from tests.fakes import HELSINKI_CENTRE, nearby

LAT, LON = HELSINKI_CENTRE.latitude, HELSINKI_CENTRE.longitude


@pytest.fixture
def search(driver_index):
    return NearbyDriverSearch(driver_index, max_radius_m=10_000, max_candidates=20)


class TestNearbyDriverSearch:
    @pytest.mark.asyncio
    async def test_no_drivers(self, search):
        assert await search.find_nearby(1, LAT, LON, "standard") == []

    @pytest.mark.asyncio
    async def test_sorted_by_distance_with_eta(self, search, driver_index):
        driver_index.add(1, 3, nearby(HELSINKI_CENTRE, 3_000))
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 500))
        driver_index.add(1, 2, nearby(HELSINKI_CENTRE, 1_500))

        found = await search.find_nearby(1, LAT, LON, "standard")

        assert [c.driver_id for c in found] == [1, 2, 3]
        assert found[0].distance_m == pytest.approx(500, rel=1e-3)
        assert found[0].eta_s == 60  # 500 m at 30 km/h
        assert [c.eta_s for c in found] == sorted(c.eta_s for c in found)

    @pytest.mark.asyncio
    async def test_unavailable_drivers_dropped(self, search, driver_index):
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 200), is_available=False)
        driver_index.add(1, 2, nearby(HELSINKI_CENTRE, 900))

        found = await search.find_nearby(1, LAT, LON, "standard")
        assert [c.driver_id for c in found] == [2]

    @pytest.mark.asyncio
    async def test_vehicle_type_filter(self, search, driver_index):
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 200), vehicle_type="standard")
        driver_index.add(1, 2, nearby(HELSINKI_CENTRE, 400), vehicle_type="comfort")
        driver_index.add(1, 3, nearby(HELSINKI_CENTRE, 600), vehicle_type="xl")

        comfort = await search.find_nearby(1, LAT, LON, "comfort")
        assert [c.driver_id for c in comfort] == [2]

    @pytest.mark.asyncio
    async def test_standard_matches_any_vehicle(self, search, driver_index):
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 200), vehicle_type="comfort")
        driver_index.add(1, 2, nearby(HELSINKI_CENTRE, 400), vehicle_type="xl")

        found = await search.find_nearby(1, LAT, LON, "standard")
        assert [c.driver_id for c in found] == [1, 2]

    @pytest.mark.asyncio
    async def test_outside_radius_dropped(self, search, driver_index):
        driver_index.add(1, 1, nearby(HELSINKI_CENTRE, 9_000))
        driver_index.add(1, 2, nearby(HELSINKI_CENTRE, 12_000))

        found = await search.find_nearby(1, LAT, LON, "standard")
        assert [c.driver_id for c in found] == [1]

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, search, driver_index):
        driver_index.add(2, 1, nearby(HELSINKI_CENTRE, 100))
        assert await search.find_nearby(1, LAT, LON, "standard") == []

    @pytest.mark.asyncio
    async def test_capped_at_max_candidates(self, driver_index):
        for driver_id in range(1, 8):
            driver_index.add(1, driver_id, nearby(HELSINKI_CENTRE, driver_id * 100))
        search = NearbyDriverSearch(driver_index, max_candidates=3)

        found = await search.find_nearby(1, LAT, LON, "standard")
        assert [c.driver_id for c in found] == [1, 2, 3]
        assert driver_index.queries[-1] == (1, 10_000, 3)

    @pytest.mark.asyncio
    async def test_unknown_vehicle_type_rejected(self, search):
        with pytest.raises(ValueError):
            await search.find_nearby(1, LAT, LON, "hovercraft")

    @pytest.mark.asyncio
    async def test_busy_crowd_does_not_hide_free_driver(self, search, driver_index):
        for driver_id in range(1, 41):
            driver_index.add(
                1, driver_id, nearby(HELSINKI_CENTRE, 100 + driver_id), is_available=False
            )
        driver_index.add(1, 99, nearby(HELSINKI_CENTRE, 2_000))

        found = await search.find_nearby(1, LAT, LON, "standard")
        assert [c.driver_id for c in found] == [99]

    @pytest.mark.asyncio
    async def test_other_vehicle_types_do_not_hide_match(self, search, driver_index):
        for driver_id in range(1, 41):
            driver_index.add(1, driver_id, nearby(HELSINKI_CENTRE, 100 + driver_id))
        driver_index.add(1, 99, nearby(HELSINKI_CENTRE, 2_000), vehicle_type="xl")

        found = await search.find_nearby(1, LAT, LON, "xl")
        assert [c.driver_id for c in found] == [99]
