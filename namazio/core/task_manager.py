"""
Single place for scheduling: in-memory timers and DB-backed registered tasks.
"""
import logging
import threading
from datetime import datetime
from queue import Queue
from threading import Timer
from typing import Any, Callable, Dict, List, Optional

from namazio.core.task import get_next_run_from_db


class TaskManager:
    def __init__(self):
        self.tasks: Dict[str, Timer] = {}
        self.result_queue = Queue()
        self.logger = logging.getLogger("TaskManager")
        self._lock = threading.RLock()
        self._registered_tasks: Dict[str, Callable[..., None]] = {}
        self._registered_config: Dict[str, tuple] = {}  # component_name -> (config, config_data)
        self._stopped = False

    def schedule_task(
        self,
        name: str,
        callback: Callable,
        delay: float,
        one_time: bool = True,
        interval: Optional[float] = None,
    ) -> None:
        """
        Schedule a task to run after delay seconds. Recurring tasks (one_time=False)
        run again every interval seconds (defaults to delay).
        """
        with self._lock:
            if self._stopped:
                self.logger.debug(f"Task manager stopped, not scheduling {name}")
                return
            if name in self.tasks:
                self.logger.debug(f"Cancelling existing task {name}")
                self.tasks[name].cancel()

            scheduled_time = datetime.now().timestamp() + delay
            timer = Timer(delay, self._run_task, args=(name, callback, delay, one_time, interval))
            timer.daemon = True
            timer.scheduled_time = scheduled_time

            self.tasks[name] = timer
            timer.start()
        self.logger.debug(f"Timer started for {name}, scheduled for {datetime.fromtimestamp(scheduled_time)}")

    def _run_task(
        self,
        name: str,
        callback: Callable,
        delay: float,
        one_time: bool,
        interval: Optional[float],
    ) -> None:
        """Run the task and reschedule if needed."""
        try:
            callback()
        except Exception as e:
            self.logger.exception(f"Error running task {name}: {e}")
        with self._lock:
            timer = self.tasks.get(name)
            # Cancelled (or replaced) while running: do not resurrect it
            if timer is None or timer is not threading.current_thread():
                return
            timer.last_run = datetime.now().timestamp()
            if one_time:
                del self.tasks[name]
                return
            self.schedule_task(name, callback, interval if interval is not None else delay, one_time, interval)

    def cancel_task(self, name: str) -> bool:
        """Cancel a scheduled (one-shot or recurring) task. Returns False if it was not scheduled."""
        with self._lock:
            timer = self.tasks.pop(name, None)
        if timer is None:
            return False
        timer.cancel()
        self.logger.info(f"Cancelled task {name}")
        return True

    def run_in_background(self, name: str, callback: Callable[[], None]) -> threading.Thread:
        """Run callback once on a worker thread (fetches that must not block the app loop)."""
        def runner():
            try:
                callback()
            except Exception as e:
                self.logger.exception(f"Background job {name} failed: {e}")

        thread = threading.Thread(target=runner, name=name, daemon=True)
        thread.start()
        return thread

    def register_task(self, component_name: str, runnable: Callable[..., None]) -> None:
        """Register a runnable for a component. runnable(config, result_queue, **kwargs) does the work and updates next_run in DB."""
        self._registered_tasks[component_name] = runnable
        self.logger.debug(f"Registered task for component: {component_name}")

    def schedule_registered_task(
        self,
        component_name: str,
        config: Dict[str, Any],
        config_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Schedule a registered task: run at next_run from DB (or immediately if past due).
        After running, the runnable updates next_run in DB; we reschedule again for the new next_run.
        """
        if component_name not in self._registered_tasks:
            self.logger.warning(f"No task registered for component: {component_name}")
            return
        self._registered_config[component_name] = (config, config_data)
        next_run = get_next_run_from_db(component_name)
        if next_run is None:
            delay = 0
        else:
            delay = max(0, int((next_run - datetime.now()).total_seconds()))
        callback = lambda: self._run_registered_and_reschedule(component_name)
        self.schedule_task(component_name, callback, delay, one_time=True)

    def _run_registered_and_reschedule(self, component_name: str) -> None:
        """Run the registered runnable then reschedule for next_run from DB."""
        runnable = self._registered_tasks.get(component_name)
        config, config_data = self._registered_config.get(component_name, (None, None))
        if runnable is None or config is None:
            return
        try:
            runnable(config, self.result_queue, config_data=config_data)
        except Exception as e:
            self.logger.exception(f"Registered task {component_name} failed: {e}")
        self.schedule_registered_task(component_name, config, config_data)

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return list of active timer names and their next run time (for API)."""
        result = []
        with self._lock:
            items = list(self.tasks.items())
        for name, timer in items:
            if getattr(timer, "scheduled_time", None) is not None:
                result.append({"name": name, "next_run_at": datetime.fromtimestamp(timer.scheduled_time)})
        return result

    def stop(self) -> None:
        """Stop all scheduled tasks."""
        with self._lock:
            self._stopped = True
            timers = list(self.tasks.values())
            self.tasks.clear()
        for timer in timers:
            timer.cancel()
