"""
Qibla direction: initial great-circle bearing and distance to the Kaaba.
"""
from pydantic import BaseModel, ConfigDict, Field

from namazio.core.geodesy import Coordinate, great_circle_distance_km, initial_bearing

KAABA = Coordinate(latitude=21.422487, longitude=39.826206)


class QiblaResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    bearing_degrees: float = Field(ge=0.0, lt=360.0)
    distance_km: float = Field(ge=0.0)


class QiblaCalculator:
    def __init__(self, target: Coordinate = KAABA):
        self.target = target

    def compute(self, origin: Coordinate) -> QiblaResult:
        return QiblaResult(
            bearing_degrees=initial_bearing(origin, self.target),
            distance_km=great_circle_distance_km(origin, self.target),
        )
