#!/usr/bin/env python3
"""Delete all appointments (every provider, every state) and remind to restart backend so no expiry timers linger.
Run from backend: poetry run python scripts/clear_appointments.py [--provider NAME]
"""
import argparse
import sys
from pathlib import Path

# Ensure backend is on path when run as script
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.db.session import SessionLocal
from app.models.appointment import Appointment


def clear_appointments(db, provider: str | None = None) -> int:
    """Delete appointments (optionally only one provider's). Returns deleted count."""
    q = db.query(Appointment)
    if provider:
        q = q.filter(Appointment.provider == provider)
    deleted = q.delete(synchronize_session=False)
    db.commit()
    return deleted


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--provider", help="Only delete this provider's appointments")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        deleted = clear_appointments(db, args.provider)
        print(f"Appointments deleted: {deleted}")
        print()
        print("Restart the backend server so no expiry timers for deleted appointments remain.")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
