"""
Base task type and abstract BaseTask with next_run persistence in DB.

Schedule times are naive local wall-clock datetimes: daily refetches are tied
to the local date rollover, not to UTC.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from queue import Queue
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select

from namazio.core.db import session_scope
from namazio.core.models import TaskSchedule

logger = logging.getLogger(__name__)


class TaskType:
    """Schedule kind for tasks."""
    DAILY = "daily"
    HOURLY = "hourly"
    INTERVAL_SECONDS = "interval_seconds"


def parse_clock(time_str: Any, default: Tuple[int, int] = (0, 0)) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute); falls back to default on garbage."""
    try:
        parts = str(time_str).strip().split(":")
        hour = int(parts[0]) if parts and parts[0] else default[0]
        minute = int(parts[1]) if len(parts) > 1 else 0
    except (ValueError, IndexError):
        return default
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return default
    return hour, minute


def compute_next_run(
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    last_run: Optional[datetime],
) -> datetime:
    """Compute next run datetime from schedule_type, schedule_config, and last_run."""
    if last_run is None:
        last_run = datetime.now()

    if schedule_type == TaskType.DAILY and schedule_config:
        hour, minute = parse_clock(schedule_config.get("time", "00:00"))
        next_run = last_run.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= last_run:
            next_run += timedelta(days=1)
        return next_run

    if schedule_type == TaskType.HOURLY:
        return last_run + timedelta(hours=1)

    if schedule_type == TaskType.INTERVAL_SECONDS and schedule_config:
        sec = int(schedule_config.get("interval_seconds", 86400))
        return last_run + timedelta(seconds=sec)

    return last_run + timedelta(days=1)


def get_next_run_from_db(component_name: str) -> Optional[datetime]:
    """Read next_run_at for component from DB. Returns None if no row or next_run_at is null (task will run immediately)."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        if row and row.next_run_at is not None:
            return row.next_run_at
    return None


def upsert_task_schedule(
    component_name: str,
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    next_run_at: Optional[datetime] = None,
) -> None:
    """Create or update TaskSchedule row. An existing row keeps its next_run_at unless one is given."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        now = datetime.now()
        if row:
            if row.schedule_type != schedule_type or row.schedule_config != schedule_config:
                # Schedule changed in config: recompute instead of keeping a stale slot
                row.next_run_at = compute_next_run(schedule_type, schedule_config, now)
            row.schedule_type = schedule_type
            row.schedule_config = schedule_config
            if next_run_at is not None:
                row.next_run_at = next_run_at
            row.updated_at = now
        else:
            session.add(TaskSchedule(
                component_name=component_name,
                schedule_type=schedule_type,
                schedule_config=schedule_config,
                next_run_at=next_run_at,
                created_at=now,
                updated_at=now,
            ))


def update_after_run(component_name: str, error: Optional[str] = None) -> None:
    """Update last_run_at and next_run_at in DB after a task run; error is kept in last_error."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.component_name == component_name)
        ).scalars().first()
        if not row:
            return
        now = datetime.now()
        row.last_run_at = now
        row.last_error = error
        row.next_run_at = compute_next_run(row.schedule_type, row.schedule_config, now)
        row.updated_at = now


class BaseTask(ABC):
    """
    Abstract base for component background tasks. Subclasses implement run();
    base helps with get_next_run and persisting next_run in DB.
    """

    def __init__(self, component_name: str, schedule_type: str, schedule_config: Optional[Dict[str, Any]] = None):
        self.component_name = component_name
        self.schedule_type = schedule_type
        self.schedule_config = schedule_config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_next_run(self, last_run: Optional[datetime] = None) -> datetime:
        """Compute next run time from schedule_type and schedule_config."""
        return compute_next_run(self.schedule_type, self.schedule_config, last_run)

    def ensure_scheduled(self, next_run_at: Optional[datetime] = None) -> None:
        """Ensure TaskSchedule row exists so next run survives restarts."""
        upsert_task_schedule(
            self.component_name,
            self.schedule_type,
            self.schedule_config,
            next_run_at=next_run_at,
        )

    @abstractmethod
    def run(
        self,
        config: Dict[str, Any],
        result_queue: Queue,
        **kwargs: Any,
    ) -> None:
        """
        Execute the task. Subclass should: do work, then call update_after_run(self.component_name),
        then result_queue.put((component_name, result)).
        """
        pass
