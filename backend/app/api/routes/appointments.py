"""
Appointments API: list available slots, look one up, reserve, confirm, and set provider availability.

Routes only shape requests and responses; engine failures are mapped by scheduling_error_to_http.
"""
import datetime as dt
import logging
from typing import Any

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field, field_validator, model_validator

from app.api.deps import get_appointment_service
from app.core.clock import utc_now
from app.core.constants import CLIENT_MAX_LENGTH, PROVIDER_MAX_LENGTH
from app.core.errors import is_error, scheduling_error_to_http
from app.services.appointment_service import AppointmentService
from app.services.slots import AvailabilityWindow

router = APIRouter()
logger = logging.getLogger(__name__)


def _unwrap(result: Any) -> Any:
    if is_error(result):
        raise scheduling_error_to_http(result)
    return result


# --- Request / response bodies ---


class TimeOfDay(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(..., ge=0, le=59)

    def as_time(self) -> dt.time:
        return dt.time(self.hour, self.minute)


class AvailabilityRequest(BaseModel):
    date: dt.date = Field(..., description="Day the availability is for (UTC)", examples=["2024-01-01"])
    start: TimeOfDay = Field(..., description="When the provider's availability starts", examples=[{"hour": 9, "minute": 0}])
    end: TimeOfDay = Field(..., description="When the provider's availability ends", examples=[{"hour": 17, "minute": 0}])

    @field_validator("date", mode="after")
    @classmethod
    def not_in_past(cls, v: dt.date) -> dt.date:
        if v < utc_now().date():
            raise ValueError("date must be today or later")
        return v

    @model_validator(mode="after")
    def end_after_start(self) -> "AvailabilityRequest":
        if self.end.as_time() <= self.start.as_time():
            raise ValueError("end must be later than start")
        return self

    def to_window(self) -> AvailabilityWindow:
        return AvailabilityWindow(date=self.date, start=self.start.as_time(), end=self.end.as_time())


class ReserveRequest(BaseModel):
    client: str = Field(..., min_length=1, max_length=CLIENT_MAX_LENGTH, examples=["fLastName"])

    @field_validator("client", mode="after")
    @classmethod
    def strip_client(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("client is required")
        return v


class AppointmentSummaryOut(BaseModel):
    id: str
    provider: str
    time: dt.datetime
    state: str


class AppointmentOut(AppointmentSummaryOut):
    client: str | None = None


# --- Routes ---


@router.get("", response_model=list[AppointmentSummaryOut])
def list_available_appointments(
    date: dt.date | None = Query(None, description="Only slots on this day (YYYY-MM-DD, UTC)"),
    provider: str | None = Query(None, description="Only slots of this provider"),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Available appointments, earliest first."""
    return service.list_available(date, provider)


@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_appointment(
    appointment_id: str,
    service: AppointmentService = Depends(get_appointment_service),
):
    return _unwrap(service.get_by_id(appointment_id))


@router.put("/{appointment_id}/reserve", response_model=AppointmentOut)
def reserve_appointment(
    appointment_id: str,
    body: ReserveRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Reserve an appointment for a client. It is released again unless confirmed in time."""
    return _unwrap(service.reserve(appointment_id, body.client))


@router.put("/{appointment_id}/confirm", response_model=AppointmentOut)
def confirm_appointment(
    appointment_id: str,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Confirm a reserved appointment."""
    return _unwrap(service.confirm(appointment_id))


@router.post("/{provider}/availability", status_code=201)
def set_provider_availability(
    body: AvailabilityRequest,
    provider: str = Path(..., min_length=1, max_length=PROVIDER_MAX_LENGTH),
    overwrite: bool = Query(False, description="Replace the provider's existing appointments for that day"),
    service: AppointmentService = Depends(get_appointment_service),
) -> dict[str, Any]:
    """Generate the provider's slots for one day."""
    created = _unwrap(service.set_availability(provider, body.to_window(), overwrite=overwrite))
    return {"provider": provider, "date": body.date.isoformat(), "slots_created": created}
