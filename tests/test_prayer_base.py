"""Tests for the Aladhan timings backend."""

from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from namazio.core.errors import ScheduleUnavailable
from namazio.core.geodesy import Coordinate
from namazio.plugins.prayer.prayer_base import (
    AladhanBackend,
    ManualBackend,
    get_backend,
    normalize_clock,
)

POINT = Coordinate(latitude=39.9334, longitude=32.8597)
DAY = date(2026, 3, 20)


def _session(payload=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value.json.return_value = payload
    return session


@pytest.mark.parametrize('value, expected', [('5:07', '05:07'), ('05:07 (+03)', '05:07'), (' 18:45', '18:45')])
def test_normalize_clock(value, expected) -> None:
    """Test that provider clock strings are reduced to HH:MM."""
    assert normalize_clock(value) == expected


def test_fetch_requests_diyanet_timings() -> None:
    """Test the request URL, parameters and the parsed timings."""
    session = _session({
        'code': 200,
        'data': {
            'timings': {
                'Fajr': '05:27 (+03)', 'Sunrise': '06:52', 'Dhuhr': '13:05', 'Asr': '16:34',
                'Sunset': '19:11', 'Maghrib': '19:11', 'Isha': '20:30', 'Midnight': '00:05',
            }
        },
    })
    backend = AladhanBackend({'timeout': 5}, session=session)

    timings = backend.fetch(POINT, DAY)

    assert timings == {
        'Fajr': '05:27', 'Sunrise': '06:52', 'Dhuhr': '13:05',
        'Asr': '16:34', 'Maghrib': '19:11', 'Isha': '20:30',
    }
    args, kwargs = session.get.call_args
    assert args[0] == 'https://api.aladhan.com/v1/timings/20-03-2026'
    assert kwargs['params']['method'] == 13
    assert kwargs['params']['latitude'] == '39.933400'
    assert kwargs['params']['timezonestring'] == 'Europe/Istanbul'
    assert kwargs['timeout'] == 5


def test_fetch_network_error() -> None:
    """Test that request failures surface as ScheduleUnavailable."""
    backend = AladhanBackend({}, session=_session(error=requests.exceptions.ConnectionError('offline')))
    with pytest.raises(ScheduleUnavailable):
        backend.fetch(POINT, DAY)


def test_fetch_http_error() -> None:
    """Test that non-2xx responses surface as ScheduleUnavailable."""
    session = _session({})
    session.get.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError('500')
    with pytest.raises(ScheduleUnavailable):
        AladhanBackend({}, session=session).fetch(POINT, DAY)


def test_fetch_not_json() -> None:
    """Test that an unparsable body surfaces as ScheduleUnavailable."""
    session = _session()
    session.get.return_value.json.side_effect = ValueError('not json')
    with pytest.raises(ScheduleUnavailable):
        AladhanBackend({}, session=session).fetch(POINT, DAY)


def test_fetch_missing_timings() -> None:
    """Test that a response without data.timings surfaces as ScheduleUnavailable."""
    with pytest.raises(ScheduleUnavailable):
        AladhanBackend({}, session=_session({'code': 400, 'data': 'Invalid date'})).fetch(POINT, DAY)


def test_manual_backend() -> None:
    """Test fixed times from config."""
    backend = ManualBackend({'times': {'Fajr': '5:00', 'Isha': '19:30'}})
    assert backend.fetch(POINT, DAY) == {'Fajr': '05:00', 'Isha': '19:30'}

    with pytest.raises(ScheduleUnavailable):
        ManualBackend({}).fetch(POINT, DAY)


def test_get_backend_factory() -> None:
    """Test backend lookup by name."""
    assert isinstance(get_backend('Aladhan', {}), AladhanBackend)
    assert get_backend('unknown', {}) is None
