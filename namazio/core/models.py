"""
Core DB models: task schedule (next_run persistence for background refetches).
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Column, String, DateTime, Text, JSON, select

from namazio.core.db import Base, session_scope


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskSchedule(Base):
    """Per-component task schedule: next_run_at and last_run_at so scheduling survives restarts."""
    __tablename__ = "task_schedules"

    component_name = Column(String(255), primary_key=True)
    schedule_type = Column(String(64), nullable=False)  # daily, hourly, interval_seconds
    schedule_config = Column(JSON, nullable=True)  # e.g. {"time": "00:01"}, {"interval_seconds": 86400}
    next_run_at = Column(DateTime(timezone=False), nullable=True)  # null = run immediately (e.g. new DB)
    last_run_at = Column(DateTime(timezone=False), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)


def get_all_task_schedules() -> List[Dict[str, Any]]:
    """Return all TaskSchedule rows as list of dicts (for API). next_run_at / last_run_at are naive local time."""
    with session_scope() as session:
        rows = list(session.execute(select(TaskSchedule)).scalars().all())
    return [
        {
            "component_name": r.component_name,
            "schedule_type": r.schedule_type,
            "schedule_config": r.schedule_config,
            "next_run_at": r.next_run_at,
            "last_run_at": r.last_run_at,
            "last_error": r.last_error,
        }
        for r in rows
    ]
