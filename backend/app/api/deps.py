"""FastAPI dependencies: one AppointmentService per request, sharing the app's expiry scheduler and rules."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.scheduling_rules import SchedulingRules
from app.db.session import get_db
from app.scheduler.expiry_scheduler import ExpiryScheduler
from app.services.appointment_service import AppointmentService


def get_expiry_scheduler(request: Request) -> ExpiryScheduler:
    return request.app.state.expiry_scheduler


def get_rules(request: Request) -> SchedulingRules:
    return request.app.state.rules


def get_appointment_service(
    db: Session = Depends(get_db),
    expiry: ExpiryScheduler = Depends(get_expiry_scheduler),
    rules: SchedulingRules = Depends(get_rules),
) -> AppointmentService:
    return AppointmentService(db, expiry, rules)
