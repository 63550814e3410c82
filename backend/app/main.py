"""
FastAPI app entrypoint.

Appointment scheduling: provider availability, reservations, confirmations. The lifespan owns the
APScheduler instance that runs reservation expiry timers.
"""
import logging
from contextlib import asynccontextmanager
from datetime import timezone
from pathlib import Path

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.routes import appointments
from app.config import settings
from app.core.constants import EXPIRY_MAX_WORKERS
from app.core.scheduling_rules import SchedulingRules
from app.scheduler.expiry_job import build_expiry_scheduler
from app.scheduler.expiry_scheduler import shutdown_scheduler

logger = logging.getLogger(__name__)


def create_scheduler() -> BackgroundScheduler:
    return BackgroundScheduler(
        timezone=timezone.utc,
        executors={"default": ThreadPoolExecutor(EXPIRY_MAX_WORKERS)},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    rules = SchedulingRules.from_settings(settings)
    scheduler = create_scheduler()
    scheduler.start()
    app.state.scheduler = scheduler
    app.state.rules = rules
    app.state.expiry_scheduler = build_expiry_scheduler(scheduler, rules)
    logger.info(
        "Scheduling ready: slot=%smin lead_time=%sh unconfirmed_expiry=%smin",
        rules.duration_minutes,
        rules.lead_time_hours,
        rules.unconfirmed_expiry_minutes,
    )
    yield
    pending = app.state.expiry_scheduler.pending()
    if pending:
        # In-memory timers; these reservations stay reserved until confirmed
        logger.warning("Shutting down with %s pending expiry timers: %s", len(pending), pending)
    shutdown_scheduler(scheduler)


app = FastAPI(title="Appointment Scheduling", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = settings.cors_origins
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Appointment Scheduling API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict:
    rules = getattr(app.state, "rules", None)
    return {"status": "ok", "rules": rules.as_dict() if rules else None}
