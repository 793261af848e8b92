"""Tests for the HTTP API: central routes and the mounted plugin routers."""

import pytest
from fastapi.testclient import TestClient

from namazio.api.server import create_app
from namazio.plugins.prayer.prayer_component import PrayerTimesComponent
from namazio.plugins.qibla.qibla_component import QiblaComponent

from conftest import ISTANBUL_TIMINGS


@pytest.fixture
def running_app(fake_app):
    """fake_app with both components started and their first results delivered."""
    prayer_config = {'enable': True, 'backend': 'manual', 'times': dict(ISTANBUL_TIMINGS), 'api_key': 'hidden'}
    fake_app.config.data['components'] = {'Prayer Times': prayer_config, 'Qibla': {'enable': True}}
    fake_app.plugin_manager.components = {'Prayer Times': PrayerTimesComponent, 'Qibla': QiblaComponent}

    fake_app.components.extend([
        PrayerTimesComponent(fake_app, prayer_config),
        QiblaComponent(fake_app, {'enable': True}),
    ])
    for component in fake_app.components:
        if isinstance(component, QiblaComponent):
            component.recompute()
        else:
            component.refresh()
    for name, result in fake_app.task_manager.drain():
        fake_app.get_component(name).handle_background_result(result)
    return fake_app


@pytest.fixture
def client(running_app) -> TestClient:
    return TestClient(create_app(running_app))


def test_list_components(client: TestClient) -> None:
    """Test that components are listed without secret config keys."""
    response = client.get('/api/components')
    assert response.status_code == 200
    data = {c['name']: c for c in response.json()}
    assert data['Prayer Times']['enabled'] is True
    assert data['Prayer Times']['running'] is True
    assert 'api_key' not in data['Prayer Times']['config']


def test_list_tasks(client: TestClient, database) -> None:
    """Test the task listing with an empty schedule table."""
    response = client.get('/api/tasks')
    assert response.status_code == 200
    assert response.json() == {'db_schedules': [], 'active_timers': []}


def test_prayer_state(client: TestClient) -> None:
    """Test the current interval and countdown endpoint."""
    response = client.get('/api/components/prayer/state')
    assert response.status_code == 200
    data = response.json()
    assert data['current_label'] in ISTANBUL_TIMINGS
    assert data['next_clock_time'] == ISTANBUL_TIMINGS[data['next_label']]
    assert data['district'] == 'Kadıköy'
    assert data['is_fallback'] is False
    assert data['remaining_text'].endswith(('saat', 'dakika'))


def test_prayer_schedule(client: TestClient) -> None:
    """Test the full day schedule endpoint."""
    response = client.get('/api/components/prayer/schedule')
    assert response.status_code == 200
    data = response.json()
    assert [b['label'] for b in data['boundaries']] == list(ISTANBUL_TIMINGS)
    assert data['location']['city'] == 'İstanbul'


def test_prayer_refresh(client: TestClient, running_app) -> None:
    """Test that a manual refresh starts a newer generation."""
    before = running_app.get_component('Prayer Times').generation
    response = client.post('/api/components/prayer/refresh')
    assert response.status_code == 200
    assert response.json() == {'generation': before + 1}


def test_prayer_state_unavailable(running_app) -> None:
    """Test 503 when the last fetch failed and nothing is shown."""
    component = running_app.get_component('Prayer Times')
    component.schedule = None
    component.last_error = 'provider down'
    client = TestClient(create_app(running_app))

    response = client.get('/api/components/prayer/state')
    assert response.status_code == 503
    assert response.json()['detail'] == 'provider down'


def test_prayer_data_without_record(client: TestClient, database) -> None:
    """Test 404 when nothing has been stored yet."""
    assert client.get('/api/components/prayer/data').status_code == 404


def test_prayer_disabled(fake_app) -> None:
    """Test 404 for component routes when the component is not running."""
    client = TestClient(create_app(fake_app))
    assert client.get('/api/components/prayer/state').status_code == 404
    assert client.get('/api/components/qibla/data').status_code == 404


def test_qibla_data(client: TestClient) -> None:
    """Test the latest qibla reading."""
    response = client.get('/api/components/qibla/data')
    assert response.status_code == 200
    data = response.json()
    assert 0 <= data['qibla']['bearing_degrees'] < 360
    assert data['location']['district'] == 'Kadıköy'


def test_qibla_compute(client: TestClient) -> None:
    """Test qibla for an arbitrary coordinate and rejection of invalid ones."""
    response = client.get('/api/components/qibla/compute', params={'lat': 21.0, 'lon': 39.0})
    assert response.status_code == 200
    assert response.json()['qibla']['distance_km'] < 200

    assert client.get('/api/components/qibla/compute', params={'lat': 95, 'lon': 0}).status_code == 422


def test_location_resolve(client: TestClient) -> None:
    """Test resolution through the shared resolver, including the emulator guard."""
    response = client.get('/api/components/location/resolve', params={'lat': 37.4220, 'lon': -122.0841})
    assert response.status_code == 200
    assert response.json()['is_fallback'] is True
    assert response.json()['city'] == 'Ankara'

    response = client.get('/api/components/location/current')
    assert response.json()['district'] == 'Kadıköy'


def test_set_position(client: TestClient, running_app) -> None:
    """Test that a new position is validated and forwarded to components."""
    assert client.post('/api/position', json={'latitude': 91, 'longitude': 0}).status_code == 422

    response = client.post('/api/position', json={'latitude': 39.9, 'longitude': 32.8})
    assert response.status_code == 200
    assert running_app.position.latitude == 39.9
    assert 'Prayer Times_fetch_2' in running_app.task_manager.background
