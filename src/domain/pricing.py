"""
Fare Calculator
===============

Formula
-------
  components = (Base_Fare + km x Per_KM + min x Per_Minute) x Vehicle_Multiplier
  surge      = components x (Surge_Multiplier - 1)           if multiplier > 1
  total      = max(components + surge + Booking_Fee, Minimum_Fare)
  VAT        = total x rate / (1 + rate)                      (VAT-inclusive)

* The vehicle multiplier never applies to the booking fee.
* Money is rounded half-up to cents with ``Decimal`` so estimates match
  receipts regardless of binary float artefacts.

Complexity: O(1) per fare.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .entities import FareEstimate, TenantPricingConfig
from .enums import VehicleType

VEHICLE_MULTIPLIERS: dict[VehicleType, float] = {
    VehicleType.STANDARD: 1.0,
    VehicleType.COMFORT: 1.3,
    VehicleType.XL: 1.5,
    VehicleType.ACCESSIBLE: 1.0,  # no extra charge for accessible vehicles
    VehicleType.ELECTRIC: 1.1,
}

_CENT = Decimal("0.01")


def round_money(amount: float) -> float:
    """Round to 2 dp, half-up, using the shortest decimal repr of *amount*."""
    return float(Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP))


def vehicle_multiplier(vehicle_type: str) -> float:
    """Unknown vehicle types price like ``standard``."""
    return VEHICLE_MULTIPLIERS.get(vehicle_type, 1.0)


def extract_vat(total: float, vat_rate: float) -> float:
    """VAT contained in a VAT-inclusive *total*."""
    return total * vat_rate / (1 + vat_rate)


class FareCalculator:
    """Pure fare breakdown; routing and surge are resolved by the caller."""

    def __init__(self, default_vat_rate: float = 0.135):
        self.default_vat_rate = default_vat_rate

    def vat_rate_for(self, config: TenantPricingConfig) -> float:
        if config.vat_rate is None:
            return self.default_vat_rate
        return config.vat_rate

    def calculate(
        self,
        config: TenantPricingConfig,
        distance_m: float,
        duration_s: int,
        vehicle_type: str,
        surge_multiplier: float = 1.0,
        route_source: str = "provider",
    ) -> FareEstimate:
        multiplier = vehicle_multiplier(vehicle_type)
        base_fare = config.base_fare * multiplier
        distance_fare = (distance_m / 1000) * config.per_km_rate * multiplier
        time_fare = (duration_s / 60) * config.per_minute_rate * multiplier
        booking_fee = config.booking_fee

        surge_multiplier = max(1.0, surge_multiplier)
        components = base_fare + distance_fare + time_fare
        surge_amount = (
            components * (surge_multiplier - 1) if surge_multiplier > 1 else 0.0
        )

        subtotal = components + surge_amount + booking_fee
        adjusted = max(subtotal, config.minimum_fare)
        vat_amount = extract_vat(adjusted, self.vat_rate_for(config))

        return FareEstimate(
            base_fare=round_money(base_fare),
            distance_fare=round_money(distance_fare),
            time_fare=round_money(time_fare),
            booking_fee=round_money(booking_fee),
            surge_multiplier=surge_multiplier,
            surge_amount=round_money(surge_amount),
            subtotal=round_money(adjusted),
            vat_amount=round_money(vat_amount),
            total=round_money(adjusted),
            currency=config.currency,
            estimated_distance_m=distance_m,
            estimated_duration_s=duration_s,
            route_source=route_source,
        )
