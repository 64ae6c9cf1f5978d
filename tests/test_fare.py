import pytest

from farepass.config.settings import FareSettings
from farepass.pricing.fare import compute_fare, fare_for, minimum_fare_distance_km


@pytest.mark.parametrize("distance", [0.0, 0.4, 1.0, 2.0, 2.5])
def test_minimum_fare_applies_up_to_two_and_a_half_km(distance):
    assert compute_fare(distance) == 5


@pytest.mark.parametrize("distance", [2.6, 4.0, 10.0, 37.25])
def test_distance_charge_above_the_floor(distance):
    assert compute_fare(distance) == pytest.approx(distance * 2)


def test_reference_values():
    assert compute_fare(1.0) == 5
    assert compute_fare(10.0) == 20


def test_fare_uses_configured_knobs():
    settings = FareSettings(rate_per_km=3.5, minimum_fare=10)
    assert fare_for(1.0, settings) == 10
    assert fare_for(4.0, settings) == pytest.approx(14.0)
    assert minimum_fare_distance_km(settings) == pytest.approx(10 / 3.5)


def test_free_rate_never_leaves_the_floor():
    assert minimum_fare_distance_km(FareSettings(rate_per_km=0, minimum_fare=5)) == float("inf")
