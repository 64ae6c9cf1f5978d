"""
Distance-based fare computation.

A fare is the distance charge, floored at a minimum fare so very short hops still
cost something. Both knobs come from `Settings.fare`; the module defaults match the
packaged `defaults.yaml`.
"""

from __future__ import annotations

from farepass.config.settings import FareSettings

DEFAULT_RATE_PER_KM = 2.0
DEFAULT_MINIMUM_FARE = 5.0


def compute_fare(
    distance_km: float,
    *,
    rate_per_km: float = DEFAULT_RATE_PER_KM,
    minimum_fare: float = DEFAULT_MINIMUM_FARE,
) -> float:
    """Return `max(distance_km * rate_per_km, minimum_fare)`."""
    return max(float(distance_km) * float(rate_per_km), float(minimum_fare))


def fare_for(distance_km: float, settings: FareSettings) -> float:
    """Compute a fare using configured rate and minimum."""
    return compute_fare(distance_km, rate_per_km=settings.rate_per_km, minimum_fare=settings.minimum_fare)


def minimum_fare_distance_km(settings: FareSettings) -> float:
    """Distance below which the minimum fare applies (2.5 km with default knobs)."""
    if settings.rate_per_km <= 0:
        return float("inf")
    return settings.minimum_fare / settings.rate_per_km
