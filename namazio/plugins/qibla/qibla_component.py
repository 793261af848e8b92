import threading
from collections import namedtuple
from typing import Any, Dict, Optional

from namazio.core.component_base import NamazioComponent
from namazio.core.geodesy import Coordinate

from .calculator import QiblaCalculator

# Posted by the background resolve+compute job
QiblaReading = namedtuple("QiblaReading", ["generation", "location", "result"])


class QiblaComponent(NamazioComponent):
    """Qibla bearing/distance for the resolved device position; recomputed when the position changes."""

    name = "Qibla"

    def __init__(self, app, config: Dict[str, Any]):
        super().__init__(app, config)
        self.calculator = QiblaCalculator()
        self.reading: Optional[QiblaReading] = None
        self._generation = 0
        self._generation_lock = threading.Lock()

    def initialize(self) -> None:
        self.recompute()

    def compute_for(self, raw: Optional[Coordinate]) -> QiblaReading:
        """Resolve raw with the shared resolver and compute against it (no publishing)."""
        location = self.app.location_resolver.resolve(raw)
        return QiblaReading(None, location, self.calculator.compute(location.coordinate))

    def recompute(self) -> int:
        with self._generation_lock:
            self._generation += 1
            generation = self._generation
        position = self.app.position

        def job():
            reading = self.compute_for(position)._replace(generation=generation)
            self.app.task_manager.result_queue.put((self.name, reading))

        self.app.task_manager.run_in_background(f"{self.name}_compute_{generation}", job)
        return generation

    def handle_background_result(self, result: Any) -> None:
        if not isinstance(result, QiblaReading):
            self.logger.warning(f"Ignoring unexpected result: {result!r}")
            return
        if result.generation != self._generation:
            self.logger.info(f"Discarding stale qibla reading (generation {result.generation})")
            return
        self._latest_result = result
        self.update()

    def update(self) -> None:
        reading = self._latest_result
        if reading is None:
            return
        self.reading = reading
        self.logger.info(
            f"Qibla from {reading.location.display_name}: "
            f"{reading.result.bearing_degrees:.1f}°, {reading.result.distance_km:.0f} km"
        )
        self.publish(reading)

    def on_position_changed(self, coordinate: Optional[Coordinate]) -> None:
        self.recompute()
