"""
Storage access for appointments. The engine only talks to the database through this class.
Writes are flushed, not committed; the caller owns the transaction.
"""
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.appointment import Appointment, AppointmentState, new_appointment_id


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def find(
        self,
        provider: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        states: Iterable[AppointmentState] | None = None,
    ) -> list[Appointment]:
        """Appointments matching every given filter, ascending by time. Time range is [start, end)."""
        q = self.db.query(Appointment)
        if provider is not None:
            q = q.filter(Appointment.provider == provider)
        if start is not None:
            q = q.filter(Appointment.time >= start)
        if end is not None:
            q = q.filter(Appointment.time < end)
        if states is not None:
            q = q.filter(Appointment.state.in_(list(states)))
        return q.order_by(Appointment.time.asc(), Appointment.provider.asc()).all()

    def find_one(self, appointment_id: str) -> Appointment | None:
        return self.db.get(Appointment, appointment_id)

    def save(self, appointment: Appointment) -> Appointment:
        """Insert or update. The id is assigned on first save."""
        if appointment.id is None:
            appointment.id = new_appointment_id()
        appointment = self.db.merge(appointment)
        self.db.flush()
        return appointment

    def add_all(self, appointments: list[Appointment]) -> list[Appointment]:
        self.db.add_all(appointments)
        self.db.flush()
        return appointments

    def delete(self, appointment_ids: Iterable[str]) -> int:
        ids = list(appointment_ids)
        if not ids:
            return 0
        deleted = (
            self.db.query(Appointment)
            .filter(Appointment.id.in_(ids))
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def release_if_reserved(self, appointment_id: str) -> bool:
        """Atomically revert a reserved appointment to available. False if it was not reserved."""
        updated = (
            self.db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.state == AppointmentState.RESERVED)
            .update(
                {Appointment.state: AppointmentState.AVAILABLE, Appointment.client: None},
                synchronize_session=False,
            )
        )
        self.db.flush()
        return updated == 1
