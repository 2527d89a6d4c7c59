"""
Seed the local database with demo users, employees, projects and entries.

Usage:
  python scripts/seed_data.py

This script is idempotent: running it multiple times upserts the same
records based on unique fields (email for users, name for projects).
"""

import os

from timetracker.config import settings
from timetracker.db import SessionLocal, Base, engine
from timetracker.logging import setup_logging
from timetracker.services.seed import seed_demo_data


def main():
    setup_logging()
    if settings.database_url.startswith("sqlite:///./var/"):
        os.makedirs("var", exist_ok=True)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed_demo_data(session)
        print("Seeded demo data:")
        print("  admin@example.com / admin123")
        print("  manager@example.com / manager123")
        print("  employee@example.com / employee123")
    finally:
        session.close()


if __name__ == "__main__":
    main()
