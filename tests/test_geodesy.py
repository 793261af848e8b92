"""Tests for coordinate validation, bearing and distance."""

import math

import pytest

from namazio.core.errors import InvalidCoordinate
from namazio.core.geodesy import (
    Coordinate,
    great_circle_distance_km,
    initial_bearing,
)


def test_coordinate_of_accepts_bounds() -> None:
    """Test that the exact range limits are valid."""
    assert Coordinate.of(90, 180).latitude == 90.0
    assert Coordinate.of(-90, -180).longitude == -180.0


@pytest.mark.parametrize(
    'lat, lon',
    [(90.0001, 0), (-91, 0), (0, 180.5), (0, -181), (float('nan'), 0), ('north', 0), (None, 1)],
)
def test_coordinate_of_rejects_invalid(lat, lon) -> None:
    """Test that out-of-range, NaN and non-numeric input raise InvalidCoordinate."""
    with pytest.raises(InvalidCoordinate):
        Coordinate.of(lat, lon)


def test_invalid_coordinate_is_value_error() -> None:
    """Test that callers catching ValueError also catch InvalidCoordinate."""
    with pytest.raises(ValueError):
        Coordinate.of(100, 0)


def test_coordinate_is_immutable() -> None:
    """Test that coordinates cannot be changed after creation."""
    coordinate = Coordinate.of(41.0, 29.0)
    with pytest.raises(Exception):
        coordinate.latitude = 0.0


def test_coordinate_str() -> None:
    """Test the lat,lon text form."""
    assert str(Coordinate.of(41, 29.5)) == '41.000000,29.500000'


def test_bearing_cardinal_directions() -> None:
    """Test bearings due north, east, south and west along simple great circles."""
    origin = Coordinate.of(0, 0)
    assert initial_bearing(origin, Coordinate.of(10, 0)) == pytest.approx(0.0)
    assert initial_bearing(origin, Coordinate.of(0, 10)) == pytest.approx(90.0)
    assert initial_bearing(origin, Coordinate.of(-10, 0)) == pytest.approx(180.0)
    assert initial_bearing(origin, Coordinate.of(0, -10)) == pytest.approx(270.0)


def test_bearing_always_in_range() -> None:
    """Test that bearings are normalized into [0, 360)."""
    points = [Coordinate.of(lat, lon) for lat in (-60, -1, 0, 1, 60) for lon in (-170, -5, 0, 5, 170)]
    for a in points:
        for b in points:
            bearing = initial_bearing(a, b)
            assert 0.0 <= bearing < 360.0


def test_distance_same_point_is_zero() -> None:
    """Test that the distance from a point to itself is zero."""
    point = Coordinate.of(39.9334, 32.8597)
    assert great_circle_distance_km(point, point) == pytest.approx(0.0, abs=1e-9)


def test_distance_one_degree_of_latitude() -> None:
    """Test one degree along a meridian against the mean earth radius."""
    distance = great_circle_distance_km(Coordinate.of(0, 0), Coordinate.of(1, 0))
    assert distance == pytest.approx(6371.0 * math.pi / 180, rel=1e-9)


def test_distance_antipodal_is_half_circumference() -> None:
    """Test that antipodal points do not produce NaN."""
    distance = great_circle_distance_km(Coordinate.of(0, 0), Coordinate.of(0, 180))
    assert distance == pytest.approx(6371.0 * math.pi, rel=1e-9)


def test_distance_is_symmetric() -> None:
    """Test that distance does not depend on direction."""
    ankara = Coordinate.of(39.9334, 32.8597)
    istanbul = Coordinate.of(41.0082, 28.9784)
    assert great_circle_distance_km(ankara, istanbul) == pytest.approx(
        great_circle_distance_km(istanbul, ankara)
    )
    assert 340 < great_circle_distance_km(ankara, istanbul) < 360
