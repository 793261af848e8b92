"""
Per-plugin API for Prayer Times. Mounted at /api/components/prayer/.
Uses PrayerTimesRecord ORM with Pydantic from_attributes for the stored record.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict

from .clock import Remaining
from .schedule import DailySchedule
from .service import get_latest_prayer_times_record

COMPONENT_NAME = "Prayer Times"


class PrayerTimesRecordResponse(BaseModel):
    """Pydantic view of PrayerTimesRecord for API; serializes from ORM."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    component_name: Optional[str] = None
    fetched_at: Optional[datetime] = None
    prayer_date: Optional[date] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    district: Optional[str] = None
    is_fallback: Optional[bool] = None
    data: Optional[Dict[str, Any]] = None


class ScheduleStateResponse(BaseModel):
    current_label: str
    current_name: str
    next_label: str
    next_name: str
    next_clock_time: str
    remaining: Remaining
    remaining_text: str
    city: Optional[str] = None
    district: Optional[str] = None
    is_fallback: bool = False


class RefreshResponse(BaseModel):
    generation: int


def _component(namazio_app):
    component = namazio_app.get_component(COMPONENT_NAME)
    if component is None:
        raise HTTPException(status_code=404, detail="Prayer Times component is not enabled")
    return component


def get_router(namazio_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/prayer."""
    router = APIRouter(tags=["Prayer Times"])

    @router.get("/state", response_model=ScheduleStateResponse)
    def get_state() -> ScheduleStateResponse:
        """Current interval, next boundary and countdown, recomputed for this request."""
        component = _component(namazio_app)
        state = component.current_state()
        if state is None:
            if component.last_error:
                raise HTTPException(status_code=503, detail=component.last_error)
            raise HTTPException(status_code=404, detail="No prayer times available yet")
        location = component.schedule.location if component.schedule else None
        return ScheduleStateResponse(
            **state.to_display(),
            city=location.city if location else None,
            district=location.district if location else None,
            is_fallback=location.is_fallback if location else False,
        )

    @router.get("/schedule", response_model=DailySchedule)
    def get_schedule() -> DailySchedule:
        """Today's six boundaries with the location they were fetched for."""
        component = _component(namazio_app)
        if component.schedule is None:
            if component.last_error:
                raise HTTPException(status_code=503, detail=component.last_error)
            raise HTTPException(status_code=404, detail="No prayer times available yet")
        return component.schedule

    @router.post("/refresh", response_model=RefreshResponse)
    def refresh() -> RefreshResponse:
        """Force a refetch; results of fetches started earlier are discarded."""
        component = _component(namazio_app)
        return RefreshResponse(generation=component.refresh(force_fetch=True))

    @router.get("/data", response_model=PrayerTimesRecordResponse)
    def get_data() -> PrayerTimesRecordResponse:
        """Return latest prayer times record from DB (ORM serialized via Pydantic)."""
        record = get_latest_prayer_times_record(COMPONENT_NAME)
        if record is None:
            raise HTTPException(status_code=404, detail="No prayer times data available")
        return PrayerTimesRecordResponse.model_validate(record)

    return router
