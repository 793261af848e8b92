"""
Per-plugin API for location resolution. Mounted at /api/components/location/.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from namazio.core.errors import InvalidCoordinate
from namazio.core.geodesy import Coordinate

from .resolver import ResolvedLocation


def get_router(namazio_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/location."""
    router = APIRouter(tags=["Location"])

    @router.get("/resolve", response_model=ResolvedLocation)
    def resolve(lat: float = Query(...), lon: float = Query(...)) -> ResolvedLocation:
        """Resolve a coordinate with the app's guard rules (fallback flagged via is_fallback)."""
        try:
            raw = Coordinate.of(lat, lon)
        except InvalidCoordinate as e:
            raise HTTPException(status_code=422, detail=str(e))
        return namazio_app.location_resolver.resolve(raw)

    @router.get("/current", response_model=ResolvedLocation)
    def current() -> ResolvedLocation:
        """Resolve the app's current device position."""
        return namazio_app.location_resolver.resolve(namazio_app.position)

    return router
