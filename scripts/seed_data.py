#!/usr/bin/env python
"""
Seed Data
Script to seed the database with a demo user, 14 days of intake logs
and a freshly generated awareness snapshot
"""

import sys
import os
import argparse
import asyncio
import logging
from datetime import datetime, timedelta, date
from typing import Dict, Optional

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings, analysis_config
from database import SessionLocal, engine, Base
from models import (
    User, Medication, MedicationSchedule,
    MedicationIntakeLog, AwarenessSnapshot, IntakeStatus, TimeSlot
)


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


DEMO_EMAIL = "demo@intakeaware.local"
SEED_DAYS = 14


def create_tables():
    """Create all database tables"""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully")


def day_offset(days_ago: int) -> date:
    return datetime.utcnow().date() - timedelta(days=days_ago)


def actual_time_from_slot(log_date: date, slot: TimeSlot, minutes_offset: int) -> datetime:
    """Canonical slot time on a day shifted by minutes_offset"""
    hour = analysis_config.TIME_SLOT_HOURS[slot.value]
    base = datetime(log_date.year, log_date.month, log_date.day, hour)
    return base + timedelta(minutes=minutes_offset)


def seed_demo_user(db) -> User:
    """Create the demo user if missing"""
    existing = db.query(User).filter(User.email == DEMO_EMAIL).first()
    if existing:
        logger.info("Demo user already exists")
        return existing

    user = User(email=DEMO_EMAIL)
    db.add(user)
    db.flush()

    logger.info(f"Created demo user (ID: {user.id})")
    return user


def clear_user_data(db, user_id: int):
    """Remove snapshots, logs and medications of a user"""
    db.query(AwarenessSnapshot).filter(AwarenessSnapshot.user_id == user_id).delete()
    db.query(MedicationIntakeLog).filter(MedicationIntakeLog.user_id == user_id).delete()
    for medication in db.query(Medication).filter(Medication.user_id == user_id).all():
        db.delete(medication)
    db.flush()
    logger.info(f"Cleared existing data for user {user_id}")


def seed_medications(db, user_id: int) -> Dict[str, MedicationSchedule]:
    """
    Add medications with schedules created at the start of the seeded range

    Returns:
        Schedules keyed by a short label
    """
    created_at = datetime.combine(day_offset(SEED_DAYS - 1), datetime.min.time())

    medications_data = [
        ("Metformin", [
            ("metformin_morning", TimeSlot.MORNING, "08:00 with breakfast"),
            ("metformin_evening", TimeSlot.EVENING, "20:00 with dinner"),
        ]),
        ("Amlodipine", [
            ("amlodipine_morning", TimeSlot.MORNING, "09:00"),
        ]),
        ("Vitamin D", [
            ("vitamin_d_morning", TimeSlot.MORNING, "10:00 with food"),
        ]),
    ]

    schedules = {}
    for name, schedule_data in medications_data:
        medication = Medication(user_id=user_id, name=name)
        db.add(medication)
        db.flush()

        for label, slot, timing in schedule_data:
            schedule = MedicationSchedule(
                medication_id=medication.id,
                time_slot=slot,
                frequency="once-daily",
                timing=timing,
                created_at=created_at,
            )
            db.add(schedule)
            schedules[label] = schedule

        logger.info(f"Added medication: {name} ({len(schedule_data)} schedules)")

    db.flush()
    return schedules


def seed_intake_logs(db, user_id: int, schedules: Dict[str, MedicationSchedule]) -> int:
    """
    Add 14 days of logs:
    - Vitamin D taken daily, 10 minutes late
    - Metformin morning taken daily on time
    - Metformin evening missed 3-5 days ago, "dizziness" on taken days
    - Amlodipine taken daily with variable lateness
    """
    amlodipine_offsets = [120, 90, 60, 30, 150, 80, 110, 70, 95, 130, 60, 45, 100, 85]
    metformin_missed_days = {3, 4, 5}

    entries = []
    for days_ago in range(SEED_DAYS):
        entries.append((schedules["vitamin_d_morning"], days_ago, IntakeStatus.TAKEN, 10, None))
        entries.append((schedules["metformin_morning"], days_ago, IntakeStatus.TAKEN, 0, None))

        if days_ago in metformin_missed_days:
            entries.append((schedules["metformin_evening"], days_ago, IntakeStatus.MISSED, None, None))
        else:
            entries.append((schedules["metformin_evening"], days_ago, IntakeStatus.TAKEN, 0, "dizziness"))

        entries.append((
            schedules["amlodipine_morning"], days_ago, IntakeStatus.TAKEN,
            amlodipine_offsets[days_ago], None
        ))

    for schedule, days_ago, status, minutes_offset, observation in entries:
        log_date = day_offset(days_ago)
        db.add(MedicationIntakeLog(
            user_id=user_id,
            medication_id=schedule.medication_id,
            schedule_id=schedule.id,
            scheduled_time=schedule.time_slot,
            actual_time=(
                actual_time_from_slot(log_date, schedule.time_slot, minutes_offset)
                if minutes_offset is not None else None
            ),
            status=status,
            observation=observation,
            log_date=log_date,
        ))

    logger.info(f"Added {len(entries)} intake logs")
    return len(entries)


def generate_snapshot(user_id: int, time_window: str) -> Optional[int]:
    """Run snapshot generation synchronously"""
    from services.snapshot_service import snapshot_service

    result = asyncio.run(snapshot_service.generate(user_id, time_window))
    logger.info(f"Snapshot generation success={result.success} id={result.snapshot_id}")
    return result.snapshot_id


def seed_all(clear_existing: bool = False, time_window: str = "14d"):
    """Seed all data"""
    if settings.ENV == "production":
        raise RuntimeError("Refusing to seed demo data in production")

    create_tables()

    db = SessionLocal()

    try:
        user = seed_demo_user(db)
        db.commit()

        if clear_existing:
            clear_user_data(db, user.id)
            db.commit()
        elif db.query(Medication).filter(Medication.user_id == user.id).count():
            logger.info("Demo user already has medications; use --clear to reseed")
            return

        schedules = seed_medications(db, user.id)
        db.commit()

        log_count = seed_intake_logs(db, user.id, schedules)
        db.commit()

        snapshot_id = generate_snapshot(user.id, time_window)

        print("\n" + "=" * 60)
        print("Seeding Complete!")
        print("=" * 60)
        print(f"\nDemo User ID: {user.id}")
        print(f"Demo User Email: {user.email}")
        print(f"Schedules: {len(schedules)}")
        print(f"Intake Logs: {log_count}")
        print(f"Snapshot ({time_window}): {snapshot_id}")

    except Exception as e:
        db.rollback()
        logger.error(f"Error during seeding: {e}")
        raise
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(
        description="Seed the database with a demo user and intake history"
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Clear the demo user's existing data before seeding"
    )
    parser.add_argument(
        "--window",
        default="14d",
        choices=sorted(analysis_config.TIME_WINDOW_DAYS),
        help="Snapshot window to generate after seeding"
    )

    args = parser.parse_args()

    seed_all(clear_existing=args.clear, time_window=args.window)


if __name__ == "__main__":
    main()
