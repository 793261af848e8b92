from typing import Dict, Any, List, Optional
import logging
import sys
import threading

from .task_manager import TaskManager
from .component_base import NamazioComponent
from .plugin_manager import PluginManager
from .config import Config
from .errors import InvalidCoordinate
from .geodesy import Coordinate


class NamazioApp:
    """Headless host: config, DB, task manager, shared location resolver and the enabled components."""

    def __init__(self, config_path: Optional[str] = None, watch_config: bool = True):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)

        self._setup_logging()

        # Initialize database (before components so tables exist)
        from .db import init_db
        init_db(self.config.data)

        self.task_manager = TaskManager()
        self.position: Optional[Coordinate] = self._position_from_config()
        self.location_resolver = self._create_location_resolver()
        self.plugin_manager = PluginManager()

        self._stop_event = threading.Event()
        self.components: List[NamazioComponent] = []
        self.initialize_components()

        # Start API server if enabled (api.enabled in config)
        try:
            from namazio.api import run_api_server
            run_api_server(self)
        except Exception as e:
            self.logger.warning(f"API server not started: {e}")

    def _setup_logging(self):
        """Configure logging to write to both file and stdout"""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        logging_config = self.config.data.get("logging") or {}
        root_logger.setLevel(getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = logging_config.get("file")
        if log_file:
            try:
                file_handler = logging.FileHandler(log_file, encoding="utf-8")
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)
            except OSError as e:
                print(f"Cannot open log file {log_file}: {e}", file=sys.stderr)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Namazio application starting...")

    def _position_from_config(self) -> Optional[Coordinate]:
        """Device position from location.lat/lon; None (fallback location) when unset or invalid"""
        location_config = self.config.get_section("location")
        lat, lon = location_config.get("lat"), location_config.get("lon")
        if lat is None or lon is None:
            return None
        try:
            return Coordinate.of(lat, lon)
        except InvalidCoordinate as e:
            self.logger.error(f"Ignoring configured position: {e}")
            return None

    def _create_location_resolver(self):
        from namazio.plugins.location import LocationResolver
        return LocationResolver.from_config(
            self.config.get_section("location"),
            cache_dir=self.config.get_section("cache").get("directory"),
        )

    def initialize_components(self):
        for component_name in self.plugin_manager.components:
            logging.debug(f"Checking component: {component_name}")
            component_config = self.config.get_component_config(component_name)

            try:
                component = self.plugin_manager.create_component(self, component_name, component_config)
                if component is None:
                    logging.debug(f"Skipping disabled component: {component_name}")
                    continue
                component.initialize()
            except Exception as e:
                logging.error(f"Error initializing component {component_name}: {e}", exc_info=True)
                continue
            self.components.append(component)
            logging.debug(f"Component {component_name} initialized successfully")

    def get_component(self, name: str) -> Optional[NamazioComponent]:
        for component in self.components:
            if component.name == name:
                return component
        return None

    def set_position(self, coordinate: Optional[Coordinate]) -> None:
        """New device position; every component refetches/recomputes for it"""
        self.logger.info(f"Position changed to {coordinate}")
        self.position = coordinate
        for component in self.components:
            try:
                component.on_position_changed(coordinate)
            except Exception as e:
                self.logger.error(f"Error notifying {component.name} of position change: {e}", exc_info=True)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Handle configuration changes"""
        self.logger.info("Handling config change")
        try:
            self.location_resolver = self._create_location_resolver()
            for component in self.components:
                task = getattr(component, "task", None)
                if task is not None and hasattr(task, "resolver"):
                    task.resolver = self.location_resolver

            position = self._position_from_config()
            if position != self.position:
                self.set_position(position)

            for component in self.components:
                component_config = (new_config.get("components") or {}).get(component.name)
                if component_config and component_config != component.config:
                    component.update_config(dict(component_config))

        except Exception as e:
            self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def _drain_result_queue(self) -> None:
        """Drain background task results and notify components (called from the main loop)."""
        while not self.task_manager.result_queue.empty():
            task_name, result = self.task_manager.result_queue.get_nowait()
            logging.debug(f"Processing task result for {task_name}: {result}")
            component = self.get_component(task_name)
            if component is None:
                logging.debug(f"No running component for result {task_name}")
                continue
            try:
                component.handle_background_result(result)
            except Exception as e:
                logging.error(f"Error handling result for {task_name}: {e}", exc_info=True)

    def run(self):
        interval = max(int(self.config.data.get("update_interval", 1000)), 10) / 1000.0
        try:
            while not self._stop_event.is_set():
                self._drain_result_queue()
                self._stop_event.wait(interval)
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    def stop(self):
        self._stop_event.set()
        for component in self.components:
            component.destroy()
        self.components = []
        self.task_manager.stop()
        self.config.cleanup()
        from .db import close_db
        close_db()
