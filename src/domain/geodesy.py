"""
Geodesic math on a spherical Earth.

Assumption
----------
Great-circle (Haversine) distance stands in for road distance whenever
the routing provider is unavailable, and is what the geo-index ranks
drivers by.  All functions take degrees and are pure.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math

EARTH_RADIUS_M = 6_371_000.0
DEFAULT_URBAN_SPEED_KMH = 30.0


def _normalize_lon(lon: float) -> float:
    """Wrap a longitude into (-180, 180]."""
    wrapped = (lon + 540.0) % 360.0 - 180.0
    return 180.0 if wrapped == -180.0 else wrapped


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in **meters** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing from point 1 to point 2, degrees in [0, 360), 0 = north."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)

    y = math.sin(dlon) * math.cos(lat2_r)
    x = math.cos(lat1_r) * math.sin(lat2_r) - math.sin(lat1_r) * math.cos(
        lat2_r
    ) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def destination_point(
    lat: float, lon: float, bearing_deg: float, distance_m: float
) -> tuple[float, float]:
    """Project *distance_m* along *bearing_deg* from (lat, lon)."""
    lat_r = math.radians(lat)
    lon_r = math.radians(lon)
    theta = math.radians(bearing_deg)
    delta = distance_m / EARTH_RADIUS_M  # angular distance

    lat2 = math.asin(
        math.sin(lat_r) * math.cos(delta)
        + math.cos(lat_r) * math.sin(delta) * math.cos(theta)
    )
    lon2 = lon_r + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(lat_r),
        math.cos(delta) - math.sin(lat_r) * math.sin(lat2),
    )
    return math.degrees(lat2), _normalize_lon(math.degrees(lon2))


def within_radius(
    point_lat: float,
    point_lon: float,
    center_lat: float,
    center_lon: float,
    radius_m: float,
) -> bool:
    return distance(point_lat, point_lon, center_lat, center_lon) <= radius_m


def midpoint(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> tuple[float, float]:
    """Great-circle midpoint between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    lon1_r = math.radians(lon1)
    dlon = math.radians(lon2 - lon1)

    bx = math.cos(lat2_r) * math.cos(dlon)
    by = math.cos(lat2_r) * math.sin(dlon)

    lat3 = math.atan2(
        math.sin(lat1_r) + math.sin(lat2_r),
        math.sqrt((math.cos(lat1_r) + bx) ** 2 + by**2),
    )
    lon3 = lon1_r + math.atan2(by, math.cos(lat1_r) + bx)
    return math.degrees(lat3), _normalize_lon(math.degrees(lon3))


def travel_time_seconds(
    distance_m: float, speed_kmh: float = DEFAULT_URBAN_SPEED_KMH
) -> int:
    """Seconds to cover *distance_m* at a constant *speed_kmh*."""
    return round(distance_m / (speed_kmh * 1000 / 3600))
