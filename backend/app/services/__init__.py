from app.services.appointment_service import AppointmentService, appointment_detail, appointment_summary
from app.services.slots import AvailabilityWindow, generate_slots

__all__ = ["AppointmentService", "appointment_detail", "appointment_summary", "AvailabilityWindow", "generate_slots"]
