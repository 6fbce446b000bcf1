#!/usr/bin/env python3
"""
Database initialization script for Docker.
Creates tables if they don't exist, and optionally fails jobs stranded in
`processing` by a worker restart.
"""

import sys
import argparse
import logging

from config import STUCK_JOB_MAX_AGE
from database import engine, Base, SessionLocal
from models import Job  # noqa: F401  registers the jobs table
from orchestrator import reconcile_stuck_jobs

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


def init_database():
    """Initialize the database by creating all tables."""
    try:
        logging.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logging.info("✅ Database tables created successfully!")
    except Exception as e:
        logging.error(f"❌ Error creating database tables: {e}")
        sys.exit(1)


def reconcile(max_age: int):
    db = SessionLocal()
    try:
        count = reconcile_stuck_jobs(db, max_age)
        logging.info(f"Reconciled {count} stuck job(s)")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and optionally sweep stuck jobs.")
    parser.add_argument("--reconcile", action="store_true", help="fail jobs stuck in processing")
    parser.add_argument("--max-age", type=int, default=STUCK_JOB_MAX_AGE, help="seconds before a job counts as stuck")
    args = parser.parse_args()

    init_database()
    if args.reconcile:
        reconcile(args.max_age)
