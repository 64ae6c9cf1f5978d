from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import Iterable, Protocol

"""
Geospatial helpers.

Trip distances are great-circle distances on a sphere; a fare meter does not need
projected geometry, so we keep this dependency-free.
"""

EARTH_RADIUS_KM = 6371.0


class LatLng(Protocol):
    lat: float
    lng: float


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in kilometres, rounded to 3 decimal places (metre precision)."""
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)

    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(h), sqrt(1 - h))
    return round(EARTH_RADIUS_KM * c, 3)


def distance_between(a: LatLng, b: LatLng) -> float:
    """`distance_km` for two objects exposing `lat`/`lng`."""
    return distance_km(a.lat, a.lng, b.lat, b.lng)


def path_distance_km(points: Iterable[LatLng]) -> float:
    """Polyline length of an ordered point sequence (0 for fewer than two points)."""
    seq = list(points)
    if len(seq) < 2:
        return 0.0
    total = 0.0
    for prev, cur in zip(seq, seq[1:]):
        total += distance_between(prev, cur)
    return round(total, 3)
