"""
Current prayer / next prayer / remaining time, derived from a DailySchedule and the wall clock.

Pure: no timers, no state. The prayer component calls derive() once a minute.
"""
from datetime import datetime, time
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from .schedule import DISPLAY_NAMES, MINUTES_PER_DAY, DailySchedule

LocalTime = Union[time, datetime]


class Remaining(BaseModel):
    model_config = ConfigDict(frozen=True)

    hours: int = Field(ge=0)
    minutes: int = Field(ge=0, le=59)

    @property
    def total_minutes(self) -> int:
        return self.hours * 60 + self.minutes

    @property
    def text(self) -> str:
        """Turkish countdown: "3 saat 5 dakika", "8 saat", "0 dakika"."""
        if self.hours == 0:
            return f"{self.minutes} dakika"
        if self.minutes == 0:
            return f"{self.hours} saat"
        return f"{self.hours} saat {self.minutes} dakika"

    @classmethod
    def from_minutes(cls, total: int) -> "Remaining":
        hours, minutes = divmod(total, 60)
        return cls(hours=hours, minutes=minutes)


class ScheduleState(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_label: str
    next_label: str
    next_clock_time: str
    remaining: Remaining

    @property
    def current_display_name(self) -> str:
        return DISPLAY_NAMES[self.current_label]

    @property
    def next_display_name(self) -> str:
        return DISPLAY_NAMES[self.next_label]

    def to_display(self) -> dict:
        """Flat view for presentation layers."""
        return {
            "current_label": self.current_label,
            "current_name": self.current_display_name,
            "next_label": self.next_label,
            "next_name": self.next_display_name,
            "next_clock_time": self.next_clock_time,
            "remaining": self.remaining.model_dump(),
            "remaining_text": self.remaining.text,
        }


def minutes_since_midnight(now: LocalTime) -> int:
    return now.hour * 60 + now.minute


class ScheduleClock:
    def derive(self, schedule: DailySchedule, now: LocalTime) -> ScheduleState:
        return derive(schedule, now)


def derive(schedule: DailySchedule, now: LocalTime) -> ScheduleState:
    """
    Which interval now falls into and how long until the next boundary.

    Reaching a boundary's minute counts as being in it. Before Fajr the current
    interval is the previous day's Isha; after Isha the next boundary is the
    following day's Fajr.
    """
    now_minutes = minutes_since_midnight(now)
    boundaries = schedule.boundaries

    next_boundary = next((b for b in boundaries if b.minutes > now_minutes), None)
    if next_boundary is None:
        next_boundary = boundaries[0]
        delta = next_boundary.minutes + MINUTES_PER_DAY - now_minutes
    else:
        delta = next_boundary.minutes - now_minutes

    current = next((b for b in reversed(boundaries) if b.minutes <= now_minutes), None)
    if current is None:
        current = boundaries[-1]

    if delta < 0:
        delta += MINUTES_PER_DAY

    return ScheduleState(
        current_label=current.label,
        next_label=next_boundary.label,
        next_clock_time=next_boundary.clock_time,
        remaining=Remaining.from_minutes(delta),
    )
