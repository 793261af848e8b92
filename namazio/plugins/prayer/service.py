"""
Service layer: save and load prayer schedules from DB so today's schedule survives a restart.

Only the row for the requested date is ever returned; saving prunes every other date.
"""
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError

from namazio.core.db import session_scope
from namazio.core.errors import ScheduleUnavailable
from namazio.core.geodesy import Coordinate
from namazio.plugins.location.resolver import ResolvedLocation
from namazio.plugins.prayer.models import PrayerTimesRecord
from namazio.plugins.prayer.schedule import DailySchedule, build_schedule

logger = logging.getLogger(__name__)


def save_prayer_times(component_name: str, schedule: DailySchedule) -> None:
    """Replace this component's stored schedule with the given one (one row, its own date)."""
    location = schedule.location
    with session_scope() as session:
        session.execute(
            delete(PrayerTimesRecord).where(PrayerTimesRecord.component_name == component_name)
        )
        session.add(
            PrayerTimesRecord(
                component_name=component_name,
                fetched_at=datetime.now(),
                prayer_date=schedule.date,
                latitude=location.coordinate.latitude,
                longitude=location.coordinate.longitude,
                city=location.city,
                district=location.district,
                is_fallback=location.is_fallback,
                data=schedule.as_timings(),
            )
        )


def get_latest_prayer_times_record(component_name: str) -> Optional[PrayerTimesRecord]:
    """Return the latest PrayerTimesRecord row for this component (for API serialization)."""
    with session_scope() as session:
        return (
            session.execute(
                select(PrayerTimesRecord)
                .where(PrayerTimesRecord.component_name == component_name)
                .order_by(PrayerTimesRecord.fetched_at.desc())
                .limit(1)
            )
            .scalars().first()
        )


def load_prayer_times(component_name: str, prayer_date: date) -> Optional[DailySchedule]:
    """Return the stored schedule for prayer_date, or None if there is none (or it no longer validates)."""
    with session_scope() as session:
        row = (
            session.execute(
                select(PrayerTimesRecord)
                .where(
                    PrayerTimesRecord.component_name == component_name,
                    PrayerTimesRecord.prayer_date == prayer_date,
                )
                .order_by(PrayerTimesRecord.fetched_at.desc())
                .limit(1)
            )
            .scalars().first()
        )
    if row is None:
        return None
    location = ResolvedLocation(
        coordinate=Coordinate(latitude=row.latitude, longitude=row.longitude),
        city=row.city,
        district=row.district,
        is_fallback=row.is_fallback,
    )
    try:
        return build_schedule(location, row.prayer_date, row.data)
    except ScheduleUnavailable as e:
        logger.warning(f"Discarding stored schedule for {prayer_date}: {e}")
        return None


class ScheduleStore:
    """Day-scoped persistence for PrayerScheduleProvider. Storage problems never fail a fetch."""

    def __init__(self, component_name: str):
        self.component_name = component_name

    def load(self, day: date) -> Optional[DailySchedule]:
        try:
            return load_prayer_times(self.component_name, day)
        except SQLAlchemyError as e:
            logger.error(f"Error loading stored prayer times: {e}")
            return None

    def save(self, schedule: DailySchedule) -> None:
        try:
            save_prayer_times(self.component_name, schedule)
        except SQLAlchemyError as e:
            logger.error(f"Error saving prayer times: {e}")
