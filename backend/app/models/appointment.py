"""
Bookable slot for one provider. state is the single source of truth for the lifecycle:
available -> reserved -> confirmed, and reserved -> available when the reservation expires.
client is set iff state is reserved or confirmed (CHECK constraint below).
"""
import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, String, UniqueConstraint
from sqlalchemy.sql import func

from app.core.constants import CLIENT_MAX_LENGTH, PROVIDER_MAX_LENGTH
from app.db.base import Base
from app.db.types import UTCDateTime


class AppointmentState(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    CONFIRMED = "confirmed"


HELD_STATES = (AppointmentState.RESERVED, AppointmentState.CONFIRMED)


def new_appointment_id() -> str:
    return str(uuid.uuid4())


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_appointment_id)
    provider = Column(String(PROVIDER_MAX_LENGTH), nullable=False, index=True)
    time = Column(UTCDateTime(), nullable=False, index=True)  # slot start
    state = Column(
        Enum(
            AppointmentState,
            name="appointment_state",
            native_enum=False,
            length=16,
            values_callable=lambda states: [s.value for s in states],
        ),
        nullable=False,
        default=AppointmentState.AVAILABLE,
    )
    client = Column(String(CLIENT_MAX_LENGTH), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("provider", "time", name="uq_appointments_provider_time"),
        CheckConstraint(
            "(state = 'available' AND client IS NULL) OR (state <> 'available' AND client IS NOT NULL)",
            name="ck_appointments_client_matches_state",
        ),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id} {self.provider} {self.time.isoformat() if self.time else None} {self.state}>"
