"""
Per-plugin API for Qibla. Mounted at /api/components/qibla/.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from namazio.core.errors import InvalidCoordinate
from namazio.core.geodesy import Coordinate
from namazio.plugins.location.resolver import ResolvedLocation

from .calculator import QiblaResult

COMPONENT_NAME = "Qibla"


class QiblaResponse(BaseModel):
    location: ResolvedLocation
    qibla: QiblaResult


def get_router(namazio_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/qibla."""
    router = APIRouter(tags=["Qibla"])

    def _component():
        component = namazio_app.get_component(COMPONENT_NAME)
        if component is None:
            raise HTTPException(status_code=404, detail="Qibla component is not enabled")
        return component

    @router.get("/data", response_model=QiblaResponse)
    def get_data() -> QiblaResponse:
        """Latest qibla reading for the device position."""
        reading = _component().reading
        if reading is None:
            raise HTTPException(status_code=404, detail="No qibla reading available yet")
        return QiblaResponse(location=reading.location, qibla=reading.result)

    @router.get("/compute", response_model=QiblaResponse)
    def compute(lat: float = Query(...), lon: float = Query(...)) -> QiblaResponse:
        """Resolve the given coordinate and compute qibla for it."""
        try:
            raw = Coordinate.of(lat, lon)
        except InvalidCoordinate as e:
            raise HTTPException(status_code=422, detail=str(e))
        reading = _component().compute_for(raw)
        return QiblaResponse(location=reading.location, qibla=reading.result)

    return router
