"""
SQLAlchemy models for prayer times: one row per component per prayer date.
"""
from sqlalchemy import Boolean, Column, String, Date, DateTime, Float, Integer, JSON

from namazio.core.db import Base


class PrayerTimesRecord(Base):
    """One validated schedule. data is JSON: {prayer_name: "HH:MM"}; prayer_date is the day it is valid for."""
    __tablename__ = "prayer_times_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    component_name = Column(String(255), nullable=False, index=True)
    fetched_at = Column(DateTime(timezone=False), nullable=False, index=True)
    prayer_date = Column(Date, nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    city = Column(String(255), nullable=False)
    district = Column(String(255), nullable=True)
    is_fallback = Column(Boolean, default=False, nullable=False)
    data = Column(JSON, nullable=False)  # {prayer_name: "HH:MM"}
