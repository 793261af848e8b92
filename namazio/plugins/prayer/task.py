"""
Background task: resolve location, get today's schedule (cache, DB, then backend), post the result.
"""
from collections import namedtuple
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from namazio.core.errors import ScheduleUnavailable
from namazio.core.geodesy import Coordinate
from namazio.core.task import BaseTask, TaskType, parse_clock
from namazio.plugins.location.resolver import LocationResolver
from namazio.plugins.prayer.schedule import PrayerScheduleProvider

# What a fetch posts back to the component. Exactly one of schedule / error is set.
PrayerFetchResult = namedtuple(
    "PrayerFetchResult",
    [
        "generation",  # int, identity of the refresh that started this fetch
        "location",    # ResolvedLocation or None
        "schedule",    # DailySchedule or None
        "error",       # str or None
    ],
    defaults=(None, None, None),
)


class PrayerTimesTask(BaseTask):
    """Fetch prayer times for the current position; daily refetch persisted in TaskSchedule."""

    def __init__(
        self,
        component_name: str,
        config: Dict[str, Any],
        resolver: LocationResolver,
        provider: PrayerScheduleProvider,
        today: Optional[Callable[[], date]] = None,
    ):
        schedule_type, schedule_config = self._schedule_from_config(config)
        super().__init__(component_name, schedule_type, schedule_config)
        self.config = config
        self.resolver = resolver
        self.provider = provider
        self.today = today or (lambda: datetime.now().date())

    def _schedule_from_config(self, config: Dict[str, Any]) -> tuple:
        hour, minute = parse_clock(config.get("schedule_time", "00:01"), default=(0, 1))
        return TaskType.DAILY, {"time": f"{hour:02d}:{minute:02d}"}

    def run(
        self,
        config: Dict[str, Any],
        result_queue: Any,
        generation: int = 0,
        position: Optional[Coordinate] = None,
        force_fetch: bool = False,
        day: Optional[date] = None,
        **kwargs: Any,
    ) -> PrayerFetchResult:
        day = day or self.today()
        location = self.resolver.resolve(position)

        try:
            schedule = self.provider.get_schedule(location, day, force_fetch=force_fetch, generation=generation)
            if schedule.location != location:
                # Same day, different place: the cached day is not ours
                self.logger.info(f"Location changed to {location.display_name}, refetching")
                schedule = self.provider.get_schedule(location, day, force_fetch=True, generation=generation)
            result = PrayerFetchResult(generation, location, schedule)
            self.logger.info(f"Prayer Times: schedule ready for {day} ({location.display_name})")
        except ScheduleUnavailable as e:
            self.logger.error(f"Prayer Times: schedule unavailable for {day}: {e}")
            result = PrayerFetchResult(generation, location, None, str(e))

        result_queue.put((self.component_name, result))
        return result
