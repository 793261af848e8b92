"""Tests for day-scoped schedule persistence."""

from datetime import date

from namazio.plugins.prayer.schedule import build_schedule
from namazio.plugins.prayer.service import (
    ScheduleStore,
    get_latest_prayer_times_record,
    load_prayer_times,
    save_prayer_times,
)

from conftest import ISTANBUL_TIMINGS

DAY = date(2026, 3, 20)


def test_save_and_load(database, kadikoy_location) -> None:
    """Test that a saved schedule loads back equal for its date."""
    schedule = build_schedule(kadikoy_location, DAY, ISTANBUL_TIMINGS)
    save_prayer_times('Prayer Times', schedule)

    assert load_prayer_times('Prayer Times', DAY) == schedule


def test_load_other_date_is_none(database, kadikoy_location) -> None:
    """Test that a schedule is never returned for another date."""
    save_prayer_times('Prayer Times', build_schedule(kadikoy_location, DAY, ISTANBUL_TIMINGS))

    assert load_prayer_times('Prayer Times', date(2026, 3, 21)) is None


def test_save_replaces_previous_day(database, kadikoy_location) -> None:
    """Test that only one row per component is kept."""
    save_prayer_times('Prayer Times', build_schedule(kadikoy_location, DAY, ISTANBUL_TIMINGS))
    save_prayer_times('Prayer Times', build_schedule(kadikoy_location, date(2026, 3, 21), ISTANBUL_TIMINGS))

    assert load_prayer_times('Prayer Times', DAY) is None
    record = get_latest_prayer_times_record('Prayer Times')
    assert record.prayer_date == date(2026, 3, 21)
    assert record.city == 'İstanbul'
    assert record.data == ISTANBUL_TIMINGS


def test_components_are_isolated(database, kadikoy_location) -> None:
    """Test that rows are scoped by component name."""
    save_prayer_times('Prayer Times', build_schedule(kadikoy_location, DAY, ISTANBUL_TIMINGS))

    assert load_prayer_times('Other', DAY) is None
    assert get_latest_prayer_times_record('Other') is None


def test_schedule_store(database, kadikoy_location) -> None:
    """Test the store adapter used by the schedule provider."""
    store = ScheduleStore('Prayer Times')
    schedule = build_schedule(kadikoy_location, DAY, ISTANBUL_TIMINGS)

    assert store.load(DAY) is None
    store.save(schedule)
    assert store.load(DAY) == schedule
