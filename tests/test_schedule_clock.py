"""Tests for deriving the current interval and countdown."""

from datetime import date, datetime, time

import pytest

from namazio.plugins.prayer.clock import Remaining, ScheduleClock, derive
from namazio.plugins.prayer.schedule import build_schedule

from conftest import ISTANBUL_TIMINGS

DAY = date(2026, 3, 20)


@pytest.fixture
def schedule(kadikoy_location):
    return build_schedule(kadikoy_location, DAY, ISTANBUL_TIMINGS)


@pytest.mark.parametrize(
    'now, current, upcoming, hours, minutes',
    [
        (time(21, 0), 'Isha', 'Fajr', 8, 0),
        (time(3, 0), 'Isha', 'Fajr', 2, 0),
        (time(0, 0), 'Isha', 'Fajr', 5, 0),
        (time(4, 59), 'Isha', 'Fajr', 0, 1),
        (time(5, 0), 'Fajr', 'Sunrise', 1, 30),
        (time(13, 0), 'Dhuhr', 'Asr', 2, 30),
        (time(12, 30), 'Dhuhr', 'Asr', 3, 0),
        (time(19, 29), 'Maghrib', 'Isha', 0, 1),
        (time(19, 30), 'Isha', 'Fajr', 9, 30),
        (time(23, 59), 'Isha', 'Fajr', 5, 1),
    ],
)
def test_derive(schedule, now, current, upcoming, hours, minutes) -> None:
    """Test current/next boundary and remaining time across the day."""
    state = derive(schedule, now)

    assert state.current_label == current
    assert state.next_label == upcoming
    assert state.next_clock_time == schedule.boundary(upcoming).clock_time
    assert (state.remaining.hours, state.remaining.minutes) == (hours, minutes)


def test_derive_ignores_seconds(schedule) -> None:
    """Test that only hour and minute of now matter."""
    assert derive(schedule, datetime(2026, 3, 20, 13, 0, 59)) == derive(schedule, time(13, 0))


def test_derive_is_idempotent(schedule) -> None:
    """Test that deriving twice for the same minute gives equal states."""
    clock = ScheduleClock()
    assert clock.derive(schedule, time(16, 45)) == clock.derive(schedule, time(16, 45))


def test_remaining_never_exceeds_a_day(schedule) -> None:
    """Test that the countdown stays below 24 hours for every minute."""
    for minute in range(24 * 60):
        state = derive(schedule, time(minute // 60, minute % 60))
        assert 0 < state.remaining.total_minutes <= 24 * 60


@pytest.mark.parametrize(
    'total, text',
    [(185, '3 saat 5 dakika'), (480, '8 saat'), (59, '59 dakika'), (0, '0 dakika'), (60, '1 saat')],
)
def test_remaining_text(total, text) -> None:
    """Test the Turkish countdown text."""
    assert Remaining.from_minutes(total).text == text


def test_state_display(schedule) -> None:
    """Test the flat display view with Turkish names."""
    display = derive(schedule, time(21, 0)).to_display()

    assert display['current_name'] == 'Yatsı'
    assert display['next_name'] == 'İmsak'
    assert display['next_clock_time'] == '05:00'
    assert display['remaining'] == {'hours': 8, 'minutes': 0}
    assert display['remaining_text'] == '8 saat'


@pytest.mark.parametrize(
    'now, current, upcoming, remaining',
    [
        (time(21, 0), 'Isha', 'Fajr', (8, 0)),
        (time(3, 0), 'Isha', 'Fajr', (2, 0)),
        (time(12, 0), 'Dhuhr', 'Asr', (3, 30)),
    ],
)
def test_derive_with_noon_dhuhr(kadikoy_location, now, current, upcoming, remaining) -> None:
    """Test wraparound, pre-Fajr and an exact boundary on a noon Dhuhr day."""
    schedule = build_schedule(kadikoy_location, DAY, {
        'Fajr': '05:00', 'Sunrise': '06:30', 'Dhuhr': '12:00',
        'Asr': '15:30', 'Maghrib': '18:45', 'Isha': '20:15',
    })
    state = derive(schedule, now)

    assert (state.current_label, state.next_label) == (current, upcoming)
    assert (state.remaining.hours, state.remaining.minutes) == remaining
