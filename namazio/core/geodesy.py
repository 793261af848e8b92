"""
Spherical earth helpers: coordinate value type, initial great-circle bearing
and haversine distance.
"""
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from namazio.core.errors import InvalidCoordinate

EARTH_RADIUS_KM = 6371.0


class Coordinate(BaseModel):
    """Immutable latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    @classmethod
    def of(cls, latitude: Any, longitude: Any) -> "Coordinate":
        """Build a Coordinate from raw input, raising InvalidCoordinate instead of ValidationError."""
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError) as e:
            raise InvalidCoordinate(f"Coordinates must be numeric, got {latitude!r}, {longitude!r}") from e
        if math.isnan(lat) or math.isnan(lon):
            raise InvalidCoordinate("Coordinates must not be NaN")
        try:
            return cls(latitude=lat, longitude=lon)
        except ValidationError as e:
            raise InvalidCoordinate(
                f"Latitude must be between -90 and 90, longitude between -180 and 180 (got {lat}, {lon})"
            ) from e

    def __str__(self) -> str:
        return f"{self.latitude:.6f},{self.longitude:.6f}"


def initial_bearing(origin: Coordinate, target: Coordinate) -> float:
    """Initial compass bearing (0 = north, clockwise) from origin to target, in [0, 360)."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    delta_lon = math.radians(target.longitude - origin.longitude)

    y = math.sin(delta_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(delta_lon)
    bearing = math.degrees(math.atan2(y, x))
    # -0.0 and tiny negatives both land on 0.0
    return (bearing + 360.0) % 360.0


def great_circle_distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two points in kilometres."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c
