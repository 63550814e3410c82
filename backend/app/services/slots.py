"""
Slot generation: turn one provider's working hours for a day into fixed-length slot starts.

Pure; storing the slots is the caller's job (AppointmentService.set_availability).
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from app.core.clock import day_start
from app.core.errors import MSG_INSUFFICIENT_AVAILABILITY, ErrorKind, Result, fail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityWindow:
    """Working hours of one provider on one UTC day. Transient; never stored."""

    date: date
    start: time
    end: time


def _offset(t: time) -> timedelta:
    return timedelta(hours=t.hour, minutes=t.minute)


def generate_slots(day: date, start: time, end: time, duration_minutes: int) -> Result[list[datetime]]:
    """
    Slot start instants from day+start, one every duration_minutes, while the slot still ends
    by day+end. Contiguous and strictly ascending.

    Returns a VALIDATION_ERROR when not even one slot fits (start + duration > end).
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")
    duration = timedelta(minutes=duration_minutes)
    midnight = day_start(day)
    slot = midnight + _offset(start)
    window_end = midnight + _offset(end)

    if slot + duration > window_end:
        return fail(logger, ErrorKind.VALIDATION_ERROR, MSG_INSUFFICIENT_AVAILABILITY.format(duration=duration_minutes))

    slots = []
    while slot + duration <= window_end:
        slots.append(slot)
        slot += duration
    return slots


def generate_window_slots(window: AvailabilityWindow, duration_minutes: int) -> Result[list[datetime]]:
    return generate_slots(window.date, window.start, window.end, duration_minutes)
