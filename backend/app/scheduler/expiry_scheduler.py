"""
Expiry timers for unconfirmed reservations: at most one live APScheduler date job per appointment id.

Each schedule() call issues a fresh token. The job carries it to the expire handler, so a timer that was
replaced (re-reservation) or cancelled (confirmation) while already firing can be recognised as stale.
Timers live in the scheduler's in-memory job store and do not survive a restart.
"""
import logging
import threading
import uuid
from datetime import timedelta
from typing import Callable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from app.core.clock import utc_now
from app.core.constants import EXPIRY_JOB_ID_PREFIX, EXPIRY_MISFIRE_GRACE_SECONDS

logger = logging.getLogger(__name__)

ExpireHandler = Callable[[str, str], None]  # (appointment_id, token)


class ExpiryScheduler:
    def __init__(self, scheduler: BaseScheduler, on_expire: ExpireHandler):
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._lock = threading.Lock()
        self._jobs: dict[str, tuple[str, Job]] = {}

    def schedule(self, appointment_id: str, delay: timedelta) -> str:
        """Start (or restart) the timer for appointment_id. Returns the token of the new timer."""
        token = uuid.uuid4().hex
        run_at = utc_now() + delay
        with self._lock:
            previous = self._jobs.pop(appointment_id, None)
            if previous is not None:
                self._remove_job(previous[1])
            job = self._scheduler.add_job(
                self._fire,
                "date",
                run_date=run_at,
                args=[appointment_id, token],
                id=f"{EXPIRY_JOB_ID_PREFIX}:{appointment_id}:{token}",
                misfire_grace_time=EXPIRY_MISFIRE_GRACE_SECONDS,
            )
            self._jobs[appointment_id] = (token, job)
        logger.info(
            "Expiry for appointment %s scheduled at %s%s",
            appointment_id,
            run_at.isoformat(),
            " (replaced previous timer)" if previous is not None else "",
        )
        return token

    def cancel(self, appointment_id: str) -> bool:
        """Drop the timer if there is one. Missing or already fired timers are not an error."""
        with self._lock:
            entry = self._jobs.pop(appointment_id, None)
            if entry is None:
                return False
            self._remove_job(entry[1])
        logger.info("Expiry for appointment %s cancelled", appointment_id)
        return True

    def discard(self, appointment_id: str, token: str) -> bool:
        """
        Forget the timer with this token without touching the job store. Used from inside a firing
        job, whose store entry the scheduler removes on its own.
        """
        with self._lock:
            entry = self._jobs.get(appointment_id)
            if entry is None or entry[0] != token:
                return False
            del self._jobs[appointment_id]
            return True

    def is_current(self, appointment_id: str, token: str) -> bool:
        with self._lock:
            entry = self._jobs.get(appointment_id)
            return entry is not None and entry[0] == token

    def current_token(self, appointment_id: str) -> str | None:
        with self._lock:
            entry = self._jobs.get(appointment_id)
            return entry[0] if entry is not None else None

    def pending(self) -> list[str]:
        """Appointment ids with a live timer."""
        with self._lock:
            return list(self._jobs)

    def _remove_job(self, job: Job) -> None:
        try:
            self._scheduler.remove_job(job.id)
        except JobLookupError:
            # Already ran (date jobs leave the store when they fire)
            pass

    def _fire(self, appointment_id: str, token: str) -> None:
        try:
            self._on_expire(appointment_id, token)
        except Exception:
            logger.exception("Expiry for appointment %s failed; it stays reserved until confirmed", appointment_id)
        finally:
            self.discard(appointment_id, token)


def shutdown_scheduler(scheduler: BaseScheduler) -> None:
    """
    Stop the scheduler without racing its main loop.

    APScheduler removes a fired date job after handing it to the executor. If shutdown() marks the
    scheduler stopped in between, that removal raises JobLookupError and kills the scheduler thread.
    Pausing and emptying the job stores first leaves the loop nothing to remove.
    """
    if not scheduler.running:
        return
    scheduler.pause()
    scheduler.remove_all_jobs()
    scheduler.shutdown(wait=True)
