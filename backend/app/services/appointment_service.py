"""
Appointment scheduling engine: availability, reservation, confirmation and expiry.

State machine (only this module changes Appointment.state / client):
    available --reserve--> reserved --confirm--> confirmed
    reserved --expire (timer)--> available

Every transition for one appointment id runs under that id's lock; setting availability for a
(provider, day) runs under that pair's lock. Failures come back as SchedulingError values.
"""
import logging
from contextlib import ExitStack
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.clock import day_bounds, hours_between, utc_now
from app.core.errors import (
    MSG_AVAILABILITY_EXISTS,
    MSG_CONFIRM_AVAILABLE,
    MSG_HELD_BY_OTHER,
    MSG_LEAD_TIME,
    MSG_NOT_FOUND,
    ErrorKind,
    Result,
    SchedulingError,
    fail,
    is_error,
)
from app.core.locks import KeyedLocks, appointment_locks, availability_locks
from app.core.scheduling_rules import SchedulingRules
from app.models.appointment import Appointment, AppointmentState
from app.scheduler.expiry_scheduler import ExpiryScheduler
from app.services.appointment_repository import AppointmentRepository
from app.services.slots import AvailabilityWindow, generate_window_slots

logger = logging.getLogger(__name__)


def appointment_summary(appointment: Appointment) -> dict[str, Any]:
    return {
        "id": appointment.id,
        "provider": appointment.provider,
        "time": appointment.time,
        "state": appointment.state.value,
    }


def appointment_detail(appointment: Appointment) -> dict[str, Any]:
    return {**appointment_summary(appointment), "client": appointment.client}


class AppointmentService:
    def __init__(
        self,
        db: Session,
        expiry: ExpiryScheduler,
        rules: SchedulingRules,
        *,
        clock: Callable[[], datetime] = utc_now,
        locks: KeyedLocks = appointment_locks,
        day_locks: KeyedLocks = availability_locks,
    ):
        self.db = db
        self.repo = AppointmentRepository(db)
        self.expiry = expiry
        self.rules = rules
        self._clock = clock
        self._locks = locks
        self._day_locks = day_locks

    # --- Queries ---

    def list_available(self, day: date | None = None, provider: str | None = None) -> list[dict[str, Any]]:
        """Available appointments, optionally for one UTC day and/or provider, earliest first."""
        start, end = day_bounds(day) if day is not None else (None, None)
        rows = self.repo.find(provider=provider, start=start, end=end, states=[AppointmentState.AVAILABLE])
        return [appointment_summary(r) for r in rows]

    def get_by_id(self, appointment_id: str) -> Result[dict[str, Any]]:
        appointment = self.repo.find_one(appointment_id)
        if appointment is None:
            return self._not_found(appointment_id)
        return appointment_detail(appointment)


    # --- Transitions ---

    def reserve(self, appointment_id: str, client: str) -> Result[dict[str, Any]]:
        """
        Hold an appointment for client until confirmed or until the expiry timer fires.
        The current holder may reserve again: the record is refreshed and the timer restarted.
        """
        with self._locks.hold(appointment_id):
            appointment = self.repo.find_one(appointment_id)
            if appointment is None:
                return self._not_found(appointment_id)
            if appointment.client is not None and appointment.client != client:
                return fail(logger, ErrorKind.CONFLICT, MSG_HELD_BY_OTHER.format(appointment_id=appointment_id))
            if appointment.state == AppointmentState.CONFIRMED:
                # Holder re-reserving a confirmed slot; confirmation is final
                return appointment_detail(appointment)

            difference = hours_between(self._clock(), appointment.time)
            if difference < self.rules.lead_time_hours:
                return fail(
                    logger,
                    ErrorKind.LEAD_TIME_VIOLATION,
                    MSG_LEAD_TIME.format(lead_time_hours=self.rules.lead_time_hours, difference=difference),
                )

            appointment.state = AppointmentState.RESERVED
            appointment.client = client
            appointment = self._save(appointment_id, appointment)
            if appointment is None:
                return self._not_found(appointment_id)
            self.expiry.schedule(appointment_id, self.rules.expiry_delay)
            logger.info("Appointment %s reserved for %s", appointment_id, client)
            return appointment_detail(appointment)

    def confirm(self, appointment_id: str) -> Result[dict[str, Any]]:
        """Confirm a reservation and stop its expiry timer. Confirming twice is a no-op."""
        with self._locks.hold(appointment_id):
            appointment = self.repo.find_one(appointment_id)
            if appointment is None:
                return self._not_found(appointment_id)
            if appointment.state == AppointmentState.AVAILABLE:
                return fail(logger, ErrorKind.BAD_REQUEST, MSG_CONFIRM_AVAILABLE.format(appointment_id=appointment_id))

            if appointment.state != AppointmentState.CONFIRMED:
                appointment.state = AppointmentState.CONFIRMED
                appointment = self._save(appointment_id, appointment)
                if appointment is None:
                    return self._not_found(appointment_id)
                logger.info("Appointment %s confirmed for %s", appointment_id, appointment.client)
            self.expiry.cancel(appointment_id)
            return appointment_detail(appointment)

    def expire(self, appointment_id: str, token: str | None = None) -> bool:
        """
        Release an unconfirmed reservation. Called by the expiry timer with its token; a timer that
        is no longer the current one for this id, or an appointment that is no longer reserved,
        leaves everything as it is. Returns True when the appointment was released.
        """
        with self._locks.hold(appointment_id):
            if token is not None and not self.expiry.is_current(appointment_id, token):
                logger.info("Expiry timer for appointment %s was replaced or cancelled; skipping", appointment_id)
                return False
            released = self.repo.release_if_reserved(appointment_id)
            self.db.commit()
            if not released:
                logger.info("Appointment %s is no longer reserved; nothing to expire", appointment_id)
                return False
            if token is None:
                self.expiry.cancel(appointment_id)
            else:
                # The firing job is removed from the store by the scheduler itself
                self.expiry.discard(appointment_id, token)
            logger.warning("Appointment %s unconfirmed, marking available again", appointment_id)
            return True

    # --- Availability ---

    def set_availability(self, provider: str, window: AvailabilityWindow, overwrite: bool = False) -> Result[int]:
        """
        Create available slots for provider from window. Returns the number of slots created.
        If the provider already has appointments that day, fails with CONFLICT unless overwrite,
        in which case all of them (whatever their state) are replaced.

        Overwriting takes the lock of every appointment it deletes, so a reserve or confirm on one
        of them either finishes first (and its timer is cancelled here) or runs afterwards and finds
        nothing.
        """
        slots = generate_window_slots(window, self.rules.duration_minutes)
        if is_error(slots):
            return slots

        start, end = day_bounds(window.date)
        with self._day_locks.hold((provider, window.date)):
            existing_ids = sorted(a.id for a in self.repo.find(provider=provider, start=start, end=end))
            if existing_ids and not overwrite:
                return fail(
                    logger,
                    ErrorKind.CONFLICT,
                    MSG_AVAILABILITY_EXISTS.format(provider=provider, day=window.date.isoformat()),
                )

            with ExitStack() as held:
                # Sorted order; nothing else takes more than one appointment lock
                for appointment_id in existing_ids:
                    held.enter_context(self._locks.hold(appointment_id))
                try:
                    if existing_ids:
                        deleted = self.repo.delete(existing_ids)
                        logger.info(
                            "Overwriting availability for %s on %s: deleted %s appointments",
                            provider,
                            window.date,
                            deleted,
                        )
                    self.repo.add_all(
                        [Appointment(provider=provider, time=slot, state=AppointmentState.AVAILABLE) for slot in slots]
                    )
                    self.db.commit()
                except Exception:
                    self.db.rollback()
                    raise
                for appointment_id in existing_ids:
                    self.expiry.cancel(appointment_id)

        logger.info("Provider %s availability on %s: %s slots", provider, window.date, len(slots))
        return len(slots)

    def _save(self, appointment_id: str, appointment: Appointment) -> Appointment | None:
        """Commit a transition. None when the row was deleted underneath it."""
        try:
            appointment = self.repo.save(appointment)
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning("Appointment %s was deleted before its update was written", appointment_id)
            return None
        return appointment

    def _not_found(self, appointment_id: str) -> SchedulingError:
        return fail(logger, ErrorKind.NOT_FOUND, MSG_NOT_FOUND.format(appointment_id=appointment_id))
