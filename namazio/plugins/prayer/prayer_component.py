import threading
from datetime import date, datetime
from typing import Any, Dict, Optional

from namazio.core import db
from namazio.core.component_base import NamazioComponent
from namazio.core.geodesy import Coordinate
from namazio.core.task import get_next_run_from_db, update_after_run

from .clock import LocalTime, ScheduleClock, ScheduleState
from .prayer_base import TimingsProvider, get_backend
from .schedule import DailySchedule, PrayerScheduleProvider
from .service import ScheduleStore
from .task import PrayerFetchResult, PrayerTimesTask


class PrayerTimesComponent(NamazioComponent):
    """
    Keeps today's schedule and publishes a ScheduleState every tick.

    Every refresh gets a generation number; a fetch result is applied only if
    no newer refresh was started meanwhile.
    """

    name = "Prayer Times"

    def __init__(self, app, config: Dict[str, Any]):
        super().__init__(app, config)
        self.backend = self._create_backend()
        store = ScheduleStore(self.name) if db.is_initialized() else None
        self.schedule_provider = PrayerScheduleProvider(self.backend, store=store)
        self.clock = ScheduleClock()
        self.task = PrayerTimesTask(self.name, config, app.location_resolver, self.schedule_provider)

        self.location = None
        self.schedule: Optional[DailySchedule] = None
        self.state: Optional[ScheduleState] = None
        self.last_error: Optional[str] = None

        self._generation = 0
        self._generation_lock = threading.Lock()
        self._rollover_requested_for: Optional[date] = None
        self._retries = 0

    @property
    def tick_task_name(self) -> str:
        return f"{self.name}_tick"

    @property
    def retry_task_name(self) -> str:
        return f"{self.name}_retry"

    def _create_backend(self) -> TimingsProvider:
        """Create prayer times backend based on configuration"""
        backend_type = self.config.get('backend', 'aladhan')
        backend = get_backend(backend_type, self.config)
        if backend is None:
            raise ValueError(f"Unknown prayer times backend: {backend_type}")
        return backend

    def initialize(self) -> None:
        # Daily refetch survives restarts through TaskSchedule
        if db.is_initialized():
            if get_next_run_from_db(self.name) is None:
                self.task.ensure_scheduled(next_run_at=self.task.get_next_run())
            else:
                self.task.ensure_scheduled()
            self.app.task_manager.register_task(self.name, self._run_scheduled_refresh)
            self.app.task_manager.schedule_registered_task(self.name, self.config, self.app.config.data)

        self.refresh()
        self._start_ticker()

    def _start_ticker(self) -> None:
        """Tick once a minute, aligned to the start of the next minute"""
        interval = float(self.config.get('tick_seconds', 60))
        delay = 60 - datetime.now().second
        self.app.task_manager.schedule_task(
            self.tick_task_name,
            self.tick,
            delay,
            one_time=False,
            interval=interval,
        )

    def _next_generation(self) -> int:
        with self._generation_lock:
            self._generation += 1
            return self._generation

    @property
    def generation(self) -> int:
        return self._generation

    def refresh(self, force_fetch: bool = False, day: Optional[date] = None) -> int:
        """Start a fetch on a worker thread. Returns its generation; older in-flight fetches become stale."""
        generation = self._next_generation()
        position = self.app.position
        self.logger.info(f"Refreshing prayer times (generation {generation})")
        self.app.task_manager.run_in_background(
            f"{self.name}_fetch_{generation}",
            lambda: self.task.run(
                self.config,
                self.app.task_manager.result_queue,
                generation=generation,
                position=position,
                force_fetch=force_fetch,
                day=day,
            ),
        )
        return generation

    def _run_scheduled_refresh(self, config: Dict[str, Any], result_queue: Any, **kwargs: Any) -> None:
        """Registered daily task: refetch for the new day, then move next_run forward"""
        generation = self._next_generation()
        result = self.task.run(config, result_queue, generation=generation, position=self.app.position)
        update_after_run(self.name, error=result.error)

    def handle_background_result(self, result: Any) -> None:
        if not isinstance(result, PrayerFetchResult):
            self.logger.warning(f"Ignoring unexpected result: {result!r}")
            return
        if result.generation != self._generation:
            self.logger.info(
                f"Discarding stale fetch result (generation {result.generation}, latest {self._generation})"
            )
            return

        self.location = result.location
        if result.error:
            self.last_error = result.error
            # A previous day's schedule must not be shown as today's
            if self.schedule is not None and self.schedule.date != datetime.now().date():
                self.schedule = None
                self.state = None
            self._schedule_retry()
            return

        self.schedule = result.schedule
        self.last_error = None
        if self._retries:
            self._retries = 0
            self.app.task_manager.cancel_task(self.retry_task_name)
        self.update()

    def _schedule_retry(self) -> None:
        """One-shot refetch after a failed fetch, at most max_retries times until one succeeds"""
        max_retries = int(self.config.get('max_retries', 3))
        if self._retries >= max_retries:
            self.logger.warning(f"Giving up after {self._retries} retries; waiting for the next scheduled fetch")
            return
        self._retries += 1
        delay = float(self.config.get('retry_minutes', 5)) * 60
        self.logger.info(f"Retrying prayer times fetch in {delay:.0f}s (attempt {self._retries}/{max_retries})")
        self.app.task_manager.schedule_task(self.retry_task_name, self.refresh, delay, one_time=True)

    def update(self) -> None:
        self.tick()

    @staticmethod
    def _date_of(now: LocalTime) -> date:
        return now.date() if isinstance(now, datetime) else datetime.now().date()

    def current_state(self, now: Optional[LocalTime] = None) -> Optional[ScheduleState]:
        """Derive without publishing. None when there is no schedule for now's date."""
        now = now or datetime.now()
        schedule = self.schedule
        if schedule is None or schedule.date != self._date_of(now):
            return None
        return self.clock.derive(schedule, now)

    def tick(self, now: Optional[LocalTime] = None) -> Optional[ScheduleState]:
        """Derive the current state and publish it; requests a refetch once the date rolls over."""
        now = now or datetime.now()
        schedule = self.schedule
        if schedule is None:
            return None

        today = self._date_of(now)
        if schedule.date != today:
            if self._rollover_requested_for != today:
                self._rollover_requested_for = today
                self.logger.info(f"Date rolled over to {today}, refetching prayer times")
                self.refresh(day=today)
            return None

        state = self.clock.derive(schedule, now)
        self.state = state
        self.publish(state)
        return state

    def on_position_changed(self, coordinate: Optional[Coordinate]) -> None:
        self.refresh()

    def _handle_config_update(self) -> None:
        self.backend = self._create_backend()
        self.schedule_provider.timings_provider = self.backend
        self.schedule_provider.clear()
        self.task = PrayerTimesTask(self.name, self.config, self.app.location_resolver, self.schedule_provider)
        self.refresh(force_fetch=True)

    def destroy(self) -> None:
        self.app.task_manager.cancel_task(self.tick_task_name)
        self.app.task_manager.cancel_task(self.retry_task_name)
        self.app.task_manager.cancel_task(self.name)
        super().destroy()
