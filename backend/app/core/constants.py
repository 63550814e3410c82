"""
Centralized constants for the scheduling engine and its scheduler jobs.

Change job ids or column limits here instead of scattering literals across models and routes.
Tunable rules (slot duration, lead time, expiry delay) come from settings, see core/scheduling_rules.py.
"""

# Expiry timers: one APScheduler date job per reserved appointment, id = f"{prefix}:{appointment_id}:{token}"
EXPIRY_JOB_ID_PREFIX = "appointment_expiry"

# Column limits (must match models/appointment.py and alembic 001)
PROVIDER_MAX_LENGTH = 50
CLIENT_MAX_LENGTH = 50

# Scheduler worker threads for expiry jobs; each job holds one DB session while it runs
EXPIRY_MAX_WORKERS = 4
# A job that could not run on time (e.g. process busy) still runs if it is at most this late
EXPIRY_MISFIRE_GRACE_SECONDS = 300
