"""Slot generation from an availability window."""
from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.core.errors import ErrorKind, SchedulingError
from app.services.slots import AvailabilityWindow, generate_slots, generate_window_slots

DAY = date(2030, 1, 3)


def _at(hour: int, minute: int) -> datetime:
    return datetime(2030, 1, 3, hour, minute, tzinfo=timezone.utc)


def test_full_hour_gives_four_quarter_hour_slots():
    assert generate_slots(DAY, time(8, 0), time(9, 0), 15) == [_at(8, 0), _at(8, 15), _at(8, 30), _at(8, 45)]


def test_slot_that_would_run_past_end_is_dropped():
    # 08:45 would end at 09:00, after 08:59
    assert generate_slots(DAY, time(8, 0), time(8, 59), 15) == [_at(8, 0), _at(8, 15), _at(8, 30)]


def test_exact_fit_gives_one_slot():
    assert generate_slots(DAY, time(8, 0), time(8, 15), 15) == [_at(8, 0)]


def test_window_shorter_than_one_slot_is_a_validation_error():
    result = generate_slots(DAY, time(8, 15), time(8, 16), 15)
    assert isinstance(result, SchedulingError)
    assert result.kind == ErrorKind.VALIDATION_ERROR
    assert "insufficient availability" in result.message.lower()


def test_end_before_start_is_a_validation_error():
    result = generate_slots(DAY, time(10, 0), time(9, 0), 15)
    assert isinstance(result, SchedulingError)
    assert result.kind == ErrorKind.VALIDATION_ERROR


@pytest.mark.parametrize(
    "start,end,duration",
    [
        (time(0, 0), time(23, 59), 15),
        (time(9, 0), time(17, 0), 30),
        (time(9, 10), time(12, 5), 20),
        (time(13, 7), time(13, 52), 45),
        (time(6, 0), time(6, 59), 1),
    ],
)
def test_slot_count_and_spacing(start, end, duration):
    slots = generate_slots(DAY, start, end, duration)
    span = (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)

    assert len(slots) == span // duration
    assert slots[0] == _at(start.hour, start.minute)
    step = timedelta(minutes=duration)
    for earlier, later in zip(slots, slots[1:]):
        assert later - earlier == step
    assert slots[-1] + step <= _at(end.hour, end.minute)


def test_slots_are_utc_instants():
    slots = generate_slots(DAY, time(8, 0), time(9, 0), 15)
    assert all(s.tzinfo is not None and s.utcoffset() == timedelta(0) for s in slots)


def test_non_positive_duration_is_rejected():
    with pytest.raises(ValueError):
        generate_slots(DAY, time(8, 0), time(9, 0), 0)


def test_window_helper_matches_generate_slots():
    window = AvailabilityWindow(date=DAY, start=time(8, 0), end=time(9, 0))
    assert generate_window_slots(window, 15) == generate_slots(DAY, time(8, 0), time(9, 0), 15)
