"""Rules the engine is parameterized with. Built from settings at startup, never read by the engine itself."""
from dataclasses import dataclass
from datetime import timedelta

from app.config import Settings


@dataclass(frozen=True)
class SchedulingRules:
    duration_minutes: int = 15
    lead_time_hours: float = 24
    unconfirmed_expiry_minutes: float = 15

    @property
    def expiry_delay(self) -> timedelta:
        return timedelta(minutes=self.unconfirmed_expiry_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulingRules":
        return cls(
            duration_minutes=settings.appointment_duration_minutes,
            lead_time_hours=settings.appointment_lead_time_hours,
            unconfirmed_expiry_minutes=settings.unconfirmed_expiry_minutes,
        )

    def as_dict(self) -> dict:
        return {
            "appointment_duration_minutes": self.duration_minutes,
            "appointment_lead_time_hours": self.lead_time_hours,
            "unconfirmed_expiry_minutes": self.unconfirmed_expiry_minutes,
        }
