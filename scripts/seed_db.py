#!/usr/bin/env python3
"""Seed the database with the demo building, units, and logins.

Usage:
    python scripts/seed_db.py [--reset]

--reset drops every table first. Default passwords are printed at the end;
change them before exposing the app.
"""

import argparse
import os
import sys

# Must set up path before app imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.database import SessionLocal, engine  # noqa: E402
from app.logging_config import setup_logging  # noqa: E402
from app.models import Base  # noqa: E402
from app.seed import USERS, reset_database, seed_database  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed Alina Visitor Parking demo data")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args()

    setup_logging()
    if args.reset:
        reset_database(engine)
    else:
        Base.metadata.create_all(bind=engine, checkfirst=True)

    db = SessionLocal()
    try:
        created = seed_database(db)
    finally:
        db.close()

    print(f"Created: {created or 'nothing (already seeded)'}")
    for email, _, role, password in USERS:
        print(f"  {role:<12} {email}  /  {password}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
