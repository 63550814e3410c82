"""Runs when a reservation timer fires: release the appointment if it is still reserved and unconfirmed."""
from apscheduler.schedulers.base import BaseScheduler

from app.core.scheduling_rules import SchedulingRules
from app.db.session import SessionLocal
from app.scheduler.expiry_scheduler import ExpiryScheduler
from app.services.appointment_service import AppointmentService


def run_expiry_job(expiry: ExpiryScheduler, rules: SchedulingRules, appointment_id: str, token: str) -> None:
    db = SessionLocal()
    try:
        AppointmentService(db, expiry, rules).expire(appointment_id, token)
    finally:
        db.close()


def build_expiry_scheduler(scheduler: BaseScheduler, rules: SchedulingRules) -> ExpiryScheduler:
    """ExpiryScheduler on the given APScheduler whose timers run run_expiry_job."""

    def on_expire(appointment_id: str, token: str) -> None:
        run_expiry_job(expiry, rules, appointment_id, token)

    expiry = ExpiryScheduler(scheduler, on_expire)
    return expiry
