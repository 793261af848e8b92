"""
Daily prayer schedule: boundary types, response validation and the same-day cached provider.
"""
import logging
import re
import threading
from datetime import date
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from namazio.core.errors import ScheduleUnavailable
from namazio.plugins.location.resolver import ResolvedLocation

logger = logging.getLogger(__name__)

PRAYER_ORDER: Tuple[str, ...] = ("Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha")

DISPLAY_NAMES = {
    "Fajr": "İmsak",
    "Sunrise": "Güneş",
    "Dhuhr": "Öğle",
    "Asr": "İkindi",
    "Maghrib": "Akşam",
    "Isha": "Yatsı",
}

MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def clock_to_minutes(clock_time: str) -> int:
    """"HH:MM" -> minutes since midnight. Raises ValueError on anything else."""
    match = _CLOCK_RE.match(clock_time)
    if not match:
        raise ValueError(f"Expected HH:MM, got {clock_time!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


class PrayerBoundary(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    clock_time: str

    @field_validator("label")
    @classmethod
    def _known_label(cls, value: str) -> str:
        if value not in PRAYER_ORDER:
            raise ValueError(f"Unknown prayer label {value!r}")
        return value

    @field_validator("clock_time")
    @classmethod
    def _clock_format(cls, value: str) -> str:
        clock_to_minutes(value)
        return value

    @property
    def minutes(self) -> int:
        return clock_to_minutes(self.clock_time)

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self.label]


class DailySchedule(BaseModel):
    """The six boundaries of one calendar day for one location. Never mutated; replaced whole."""

    model_config = ConfigDict(frozen=True)

    date: date
    location: ResolvedLocation
    boundaries: Tuple[PrayerBoundary, ...]

    @model_validator(mode="after")
    def _ordered(self) -> "DailySchedule":
        labels = tuple(b.label for b in self.boundaries)
        if labels != PRAYER_ORDER:
            raise ValueError(f"Boundaries must be {PRAYER_ORDER}, got {labels}")
        for earlier, later in zip(self.boundaries, self.boundaries[1:]):
            if later.minutes <= earlier.minutes:
                raise ValueError(
                    f"{later.label} ({later.clock_time}) is not after {earlier.label} ({earlier.clock_time})"
                )
        return self

    def boundary(self, label: str) -> PrayerBoundary:
        return self.boundaries[PRAYER_ORDER.index(label)]

    def as_timings(self) -> dict:
        return {b.label: b.clock_time for b in self.boundaries}


def build_schedule(location: ResolvedLocation, day: date, timings: Any) -> DailySchedule:
    """Validate a provider answer into a DailySchedule. Raises ScheduleUnavailable on any shape problem."""
    if not isinstance(timings, Mapping):
        raise ScheduleUnavailable(f"Timings response is not a mapping: {type(timings).__name__}")
    missing = [label for label in PRAYER_ORDER if label not in timings]
    if missing:
        raise ScheduleUnavailable(f"Timings response is missing {', '.join(missing)}")
    try:
        boundaries = tuple(
            PrayerBoundary(label=label, clock_time=str(timings[label]).strip())
            for label in PRAYER_ORDER
        )
        return DailySchedule(date=day, location=location, boundaries=boundaries)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        raise ScheduleUnavailable(f"Invalid timings for {day}: {e}") from e


class PrayerScheduleProvider:
    """
    Returns today's schedule, fetching at most once per calendar date.

    The cache is a single slot holding the last good DailySchedule; a request for
    a different date misses and the slot is replaced whole on success.
    """

    def __init__(self, timings_provider, store=None):
        self.timings_provider = timings_provider
        self.store = store
        self._slot: Optional[DailySchedule] = None
        self._newest_generation: Optional[int] = None
        self._lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def cached(self) -> Optional[DailySchedule]:
        return self._slot

    def clear(self) -> None:
        with self._lock:
            self._slot = None

    def get_schedule(
        self,
        location: ResolvedLocation,
        day: date,
        force_fetch: bool = False,
        generation: Optional[int] = None,
    ) -> DailySchedule:
        """
        Args:
            location: resolved location to fetch for
            day: calendar date the boundaries belong to
            force_fetch: bypass slot and store (manual refresh)
            generation: identity of the request; a result older than the newest
                generation seen is returned but neither cached nor stored
        Raises:
            ScheduleUnavailable: provider failed or returned unusable data; nothing is cached
        """
        if not force_fetch:
            slot = self._slot
            if slot is not None and slot.date == day:
                self.logger.debug(f"Schedule cache hit for {day}")
                return slot

            stored = self._load_from_store(location, day)
            if stored is not None:
                self._replace(stored, generation)
                return stored

        self.logger.info(f"Fetching prayer times for {day} at {location.coordinate}")
        try:
            timings = self.timings_provider.fetch(location.coordinate, day)
        except ScheduleUnavailable:
            raise
        except Exception as e:
            raise ScheduleUnavailable(f"Timings provider failed: {e}") from e

        schedule = build_schedule(location, day, timings)
        if self._replace(schedule, generation) and self.store is not None:
            self.store.save(schedule)
        return schedule

    def _replace(self, schedule: DailySchedule, generation: Optional[int] = None) -> bool:
        """Put schedule in the slot unless a newer request already did. Returns whether it was kept."""
        with self._lock:
            if generation is not None:
                if self._newest_generation is not None and generation < self._newest_generation:
                    self.logger.info(
                        f"Not caching superseded schedule (generation {generation}, newest {self._newest_generation})"
                    )
                    return False
                self._newest_generation = generation
            self._slot = schedule
            return True

    def _load_from_store(self, location: ResolvedLocation, day: date) -> Optional[DailySchedule]:
        if self.store is None:
            return None
        schedule = self.store.load(day)
        if schedule is not None and schedule.location != location:
            self.logger.info(f"Stored schedule for {day} belongs to {schedule.location.display_name}, ignoring")
            return None
        if schedule is not None:
            self.logger.info(f"Loaded stored schedule for {day}")
        return schedule
