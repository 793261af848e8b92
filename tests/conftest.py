"""Shared fixtures: temporary database, fake providers and a headless stand-in for NamazioApp."""

from datetime import date
from queue import Queue
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

from namazio.core import db
from namazio.core.errors import GeocodeUnavailable
from namazio.core.geodesy import Coordinate
from namazio.plugins.location.geocode_base import GeocodeResult, ReverseGeocodeProvider
from namazio.plugins.location.resolver import LocationResolver, ResolvedLocation
from namazio.plugins.prayer.prayer_base import TimingsProvider

ISTANBUL_TIMINGS = {
    'Fajr': '05:00',
    'Sunrise': '06:30',
    'Dhuhr': '12:30',
    'Asr': '15:30',
    'Maghrib': '18:00',
    'Isha': '19:30',
}

KADIKOY = GeocodeResult(
    city='İstanbul', district='Kadıköy', country_name='Türkiye', country_code='TR'
)


class FakeGeocoder(ReverseGeocodeProvider):
    """Answers every lookup with a fixed result (or raises) and records the calls."""

    def __init__(self, result: Optional[GeocodeResult] = KADIKOY, error: Optional[Exception] = None):
        super().__init__({})
        self.result = result
        self.error = error
        self.calls: List[Coordinate] = []

    def reverse_geocode(self, coordinate: Coordinate) -> GeocodeResult:
        self.calls.append(coordinate)
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise GeocodeUnavailable('no result')
        return self.result


class FakeTimings(TimingsProvider):
    """Returns the configured timings dict and counts fetches."""

    def __init__(self, timings: Any = None, error: Optional[Exception] = None):
        super().__init__({})
        self.timings = dict(ISTANBUL_TIMINGS) if timings is None else timings
        self.error = error
        self.calls: List[tuple] = []

    def fetch(self, coordinate: Coordinate, day: date) -> Dict[str, str]:
        self.calls.append((coordinate, day))
        if self.error is not None:
            raise self.error
        return self.timings


class InlineTaskManager:
    """TaskManager stand-in: background jobs run inline, timers are only recorded."""

    def __init__(self) -> None:
        self.result_queue: Queue = Queue()
        self.background: List[str] = []
        self.scheduled: Dict[str, tuple] = {}
        self.cancelled: List[str] = []

    def run_in_background(self, name: str, callback: Callable[[], None]) -> None:
        self.background.append(name)
        callback()

    def schedule_task(self, name, callback, delay, one_time=True, interval=None) -> None:
        self.scheduled[name] = (callback, delay, one_time, interval)

    def cancel_task(self, name: str) -> bool:
        self.cancelled.append(name)
        return self.scheduled.pop(name, None) is not None

    def get_active_timers(self) -> List[Dict[str, Any]]:
        return []

    def drain(self) -> List[tuple]:
        items = []
        while not self.result_queue.empty():
            items.append(self.result_queue.get_nowait())
        return items


@pytest.fixture
def database(tmp_path):
    """Initialize a throwaway sqlite database for the test."""
    db.init_db(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield
    db.close_db()


@pytest.fixture(autouse=True)
def _no_leaked_database():
    """Tests that do not ask for `database` run without one."""
    db.close_db()
    yield
    db.close_db()


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def resolver(geocoder: FakeGeocoder) -> LocationResolver:
    return LocationResolver(geocoder)


@pytest.fixture
def kadikoy_location() -> ResolvedLocation:
    return ResolvedLocation(
        coordinate=Coordinate(latitude=40.9900, longitude=29.0300),
        city='İstanbul',
        district='Kadıköy',
    )


@pytest.fixture
def fake_app(resolver: LocationResolver):
    """Just enough of NamazioApp for components and API routers."""
    components: List[Any] = []

    def get_component(name):
        return next((c for c in components if c.name == name), None)

    def set_position(coordinate):
        app.position = coordinate
        for component in components:
            component.on_position_changed(coordinate)

    app = SimpleNamespace(
        config=SimpleNamespace(data={'components': {}, 'api': {'enabled': False}}),
        plugin_manager=SimpleNamespace(components={}),
        task_manager=InlineTaskManager(),
        location_resolver=resolver,
        position=Coordinate(latitude=40.9900, longitude=29.0300),
        components=components,
        get_component=get_component,
        set_position=set_position,
    )
    return app
