import pytest

from threat_monitor.geo.distance import format_distance, great_circle_distance_km, is_within_radius

KYIV = (50.4501, 30.5234)
KHARKIV = (49.9935, 36.2304)


def test_same_point_is_zero():
    assert great_circle_distance_km(*KYIV, *KYIV) == 0


def test_kyiv_to_kharkiv():
    assert great_circle_distance_km(*KYIV, *KHARKIV) == pytest.approx(409, abs=3)


def test_distance_is_symmetric():
    assert great_circle_distance_km(*KYIV, *KHARKIV) == pytest.approx(great_circle_distance_km(*KHARKIV, *KYIV))


def test_radius_boundary_is_inclusive():
    distance = great_circle_distance_km(*KYIV, *KHARKIV)
    check = is_within_radius(*KYIV, *KHARKIV, radius_km=distance)
    assert check.within is True
    assert check.distance_km == distance
    assert is_within_radius(*KYIV, *KHARKIV, radius_km=distance - 0.01).within is False


@pytest.mark.parametrize(
    "km, expected",
    [
        (0, "0 м"),
        (0.5, "500 м"),
        (0.0504, "50 м"),
        (1, "1.0 км"),
        (12.345, "12.3 км"),
        (409.04, "409.0 км"),
    ],
)
def test_format_distance(km, expected):
    assert format_distance(km) == expected
