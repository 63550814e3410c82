#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from repo root or backend/:
  poetry run python backend/scripts/check_backend.py
  # or:
  cd backend && poetry run python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        print("WARN backend/.env missing; using defaults (DATABASE_URL, APPOINTMENT_* rules)")
    else:
        print("OK  .env exists")

    # 2) Settings (catches invalid scheduling rules)
    try:
        from app.config import settings
        from app.core.scheduling_rules import SchedulingRules

        rules = SchedulingRules.from_settings(settings)
        print("OK  Scheduling rules:", rules.as_dict())
    except Exception as e:
        errors.append(f"Settings: {e}")
        print("FAIL Settings:", e)
        return 1

    # 3) DB connection and appointments table
    try:
        from sqlalchemy import inspect, text
        from app.db.session import engine
        from app.db.tables import ALL_TABLE_NAMES

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names())
        if missing:
            errors.append(f"Tables missing: {sorted(missing)}. Run: alembic upgrade head")
            print("FAIL Tables missing:", sorted(missing))
        else:
            print("OK  Tables exist:", ", ".join(ALL_TABLE_NAMES))
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 4) App import (catches missing deps, bad imports)
    try:
        from app.main import app  # noqa: F401
        print("OK  App import (app.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)

    # 5) Port 8000
    try:
        import socket
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 8000))
        print("OK  Port 8000 is free")
    except OSError:
        errors.append("Port 8000 is in use. Stop the other process or use another port (e.g. --port 8001).")
        print("FAIL Port 8000 is in use")

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        print("\nThen start backend: cd backend && poetry run uvicorn app.main:app --reload --port 8000")
        return 1

    print("\nAll checks passed. Start with: cd backend && poetry run uvicorn app.main:app --reload --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
