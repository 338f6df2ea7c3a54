"""
Surge policies  (Strategy Pattern)
==================================

A policy turns local demand (open ride requests) and supply (available
drivers) into a multiplier in ``[1.0, max_multiplier]``.

* ``SupplyDemandSurgePolicy`` -- ratio = demand / supply.  At or below
  the threshold there is no surge; above it the multiplier grows as
  ``ratio / threshold`` and is capped.  Demand with zero supply surges
  to the cap.
* ``FlatSurgePolicy`` -- always 1.0 (tenants without surge, tests).

The local area is an H3 cell and its neighbours, so demand counts are
an indexed ``IN`` over a handful of cell ids.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import h3


class SurgePolicy(ABC):
    @abstractmethod
    def multiplier(self, open_requests: int, available_drivers: int) -> float: ...


class FlatSurgePolicy(SurgePolicy):
    def multiplier(self, open_requests: int, available_drivers: int) -> float:
        return 1.0


class SupplyDemandSurgePolicy(SurgePolicy):
    def __init__(self, threshold_ratio: float = 1.5, max_multiplier: float = 3.0):
        self.threshold_ratio = threshold_ratio
        self.max_multiplier = max_multiplier

    def multiplier(self, open_requests: int, available_drivers: int) -> float:
        if open_requests <= 0:
            return 1.0
        if available_drivers <= 0:
            return self.max_multiplier

        ratio = open_requests / available_drivers
        if ratio <= self.threshold_ratio:
            return 1.0
        return round(min(self.max_multiplier, ratio / self.threshold_ratio), 2)


# ── Local area ────────────────────────────────────────────────────────


def ride_h3_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def neighbourhood_cells(lat: float, lng: float, resolution: int = 7, k: int = 1) -> set[str]:
    """The point's cell plus its k-ring; at res 7, k=1 spans ~36 km²."""
    return set(h3.grid_disk(ride_h3_cell(lat, lng, resolution), k))
