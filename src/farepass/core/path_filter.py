"""
GPS noise filtering.

Receivers jitter by a few metres while stationary or crawling in traffic. Summing
that jitter would bill riders for distance they never travelled, so samples closer
than a minimum separation to the last *kept* sample are dropped.

The filter is a greedy single pass: it is deterministic for a given input order,
and re-running it over an already-filtered path plus new samples gives the same
result as filtering the whole raw sequence at once.
"""

from __future__ import annotations

from typing import Sequence, TypeVar

from farepass.core.geo import LatLng, distance_between

P = TypeVar("P", bound=LatLng)

DEFAULT_MIN_DISTANCE_M = 10.0


def filter_gps_points(points: Sequence[P], min_distance_m: float = DEFAULT_MIN_DISTANCE_M) -> list[P]:
    """Return the points that are at least `min_distance_m` from the previously kept point.

    The first point is always kept; sequences of length <= 1 come back unchanged.
    """
    if len(points) <= 1:
        return list(points)

    kept = [points[0]]
    for point in points[1:]:
        if distance_between(kept[-1], point) * 1000 >= min_distance_m:
            kept.append(point)
    return kept
