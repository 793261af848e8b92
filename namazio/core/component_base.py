from abc import ABC, abstractmethod
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from namazio.core.geodesy import Coordinate


class NamazioComponent(ABC):
    """
    Headless feature component. Background work posts results to the app's
    result queue; the app loop hands them back through handle_background_result.
    Derived values are pushed to subscribers with publish().
    """

    name = "Component"

    def __init__(self, app, config: Dict[str, Any]):
        self.config = config
        self.app = app
        self.logger = logging.getLogger(self.name)
        self._latest_result = None
        self._subscribers: List[Callable[[Any], None]] = []
        self._subscribers_lock = threading.Lock()

    @abstractmethod
    def initialize(self) -> None:
        """Start the component: kick off first fetch, schedule recurring work"""
        pass

    @abstractmethod
    def update(self) -> None:
        """Recompute derived state from the latest result"""
        pass

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register a listener for published values. Returns an unsubscribe function."""
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: Any) -> None:
        """Send value to every subscriber; one failing listener does not stop the others"""
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(value)
            except Exception as e:
                self.logger.error(f"Subscriber of {self.name} failed: {e}", exc_info=True)

    def handle_background_result(self, result: Any) -> None:
        """Store result and trigger update"""
        self._latest_result = result
        self.update()

    def on_position_changed(self, coordinate: Optional[Coordinate]) -> None:
        """Called by the app when the device position changes"""
        pass

    def destroy(self) -> None:
        """Clean up resources"""
        with self._subscribers_lock:
            self._subscribers.clear()
        self.logger.debug(f"Component {self.name} destroyed")

    def update_config(self, new_config: Dict[str, Any]) -> None:
        """Update component configuration"""
        self.config = new_config
        self.logger.info(f"Updated config for {self.name}")
        self._handle_config_update()

    def _handle_config_update(self) -> None:
        """Handle configuration updates"""
        self.update()
