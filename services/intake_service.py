"""
Intake Service
Business logic for immutable medication intake logs
"""

import logging
from typing import Dict, List, Optional, Any
from datetime import datetime, date, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db_context
import models
from models import IntakeStatus


logger = logging.getLogger(__name__)


class DuplicateIntakeLogError(ValueError):
    """A schedule already has a log for the requested day"""


def _utc_today() -> date:
    return datetime.utcnow().date()


def _to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Stored datetimes are naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class IntakeService:
    """
    Service for intake logging

    Logs are append-only: one per schedule per calendar day, never updated.
    """

    async def log_intake(
        self,
        user_id: int,
        medication_id: int,
        schedule_id: int,
        status: IntakeStatus,
        observation: Optional[str] = None,
        actual_time: Optional[datetime] = None,
        log_date: Optional[date] = None,
        db: Optional[Session] = None
    ) -> models.MedicationIntakeLog:
        """
        Create an intake log

        Args:
            user_id: Owner of the medication
            medication_id: Medication ID
            schedule_id: Schedule ID
            status: TAKEN or MISSED
            observation: Optional free-text observation
            actual_time: When the dose was taken (TAKEN only)
            log_date: Calendar day of the log, defaults to today (UTC)
            db: Database session

        Returns:
            Created MedicationIntakeLog

        Raises:
            ValueError: on missing identifiers
            LookupError: when the schedule is not the user's
            DuplicateIntakeLogError: on a second log for the same schedule and day
        """
        if not user_id or not medication_id or not schedule_id:
            raise ValueError("Missing identifiers for intake log creation")

        def _log(session: Session) -> models.MedicationIntakeLog:
            schedule = session.query(models.MedicationSchedule).filter(
                models.MedicationSchedule.id == schedule_id
            ).first()

            if (
                not schedule
                or schedule.medication_id != medication_id
                or schedule.medication.user_id != user_id
            ):
                raise LookupError("Schedule not found or not accessible")

            day = log_date or _utc_today()
            if self._exists(session, schedule_id, day):
                raise DuplicateIntakeLogError("Already logged today")

            log = models.MedicationIntakeLog(
                user_id=user_id,
                medication_id=medication_id,
                schedule_id=schedule_id,
                scheduled_time=schedule.time_slot,
                actual_time=_to_utc_naive(actual_time) if status == IntakeStatus.TAKEN else None,
                status=status,
                observation=(observation or "").strip() or None,
                log_date=day,
            )

            session.add(log)
            try:
                session.commit()
            except IntegrityError:
                # Concurrent write passed the existence check first
                session.rollback()
                raise DuplicateIntakeLogError("Already logged today")
            session.refresh(log)

            logger.info(
                f"Logged intake for user {user_id}, "
                f"medication {medication_id}, schedule {schedule_id}: {status.value}"
            )
            return log

        if db:
            return _log(db)

        with get_db_context() as session:
            return _log(session)

    def _exists(self, session: Session, schedule_id: int, log_date: date) -> bool:
        return session.query(models.MedicationIntakeLog.id).filter(
            models.MedicationIntakeLog.schedule_id == schedule_id,
            models.MedicationIntakeLog.log_date == log_date
        ).first() is not None

    async def has_intake_log_for_day(
        self,
        schedule_id: int,
        log_date: Optional[date] = None,
        db: Optional[Session] = None
    ) -> bool:
        """Check whether a schedule already has a log for the day"""
        if not schedule_id:
            return False

        if db:
            return self._exists(db, schedule_id, log_date or _utc_today())

        with get_db_context() as session:
            return self._exists(session, schedule_id, log_date or _utc_today())

    async def get_schedules_with_log_status(
        self,
        user_id: int,
        log_date: Optional[date] = None,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """All schedules of a user with whether the day is already logged"""
        def _get(session: Session) -> List[Dict[str, Any]]:
            day = log_date or _utc_today()
            schedules = session.query(models.MedicationSchedule).join(
                models.Medication
            ).filter(
                models.Medication.user_id == user_id
            ).order_by(models.MedicationSchedule.created_at).all()

            logged = {
                row.schedule_id
                for row in session.query(models.MedicationIntakeLog.schedule_id).filter(
                    models.MedicationIntakeLog.user_id == user_id,
                    models.MedicationIntakeLog.log_date == day
                ).all()
            }

            return [
                {
                    "schedule_id": s.id,
                    "medication_id": s.medication_id,
                    "medication_name": s.medication.name,
                    "time_slot": s.time_slot.value,
                    "frequency": s.frequency,
                    "timing": s.timing,
                    "note": s.note,
                    "already_logged": s.id in logged,
                }
                for s in schedules
            ]

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def wipe_user_intake_data(
        self,
        user_id: int,
        db: Optional[Session] = None
    ) -> Dict[str, int]:
        """Delete every intake log and awareness snapshot of a user"""
        def _wipe(session: Session) -> Dict[str, int]:
            snapshots = session.query(models.AwarenessSnapshot).filter(
                models.AwarenessSnapshot.user_id == user_id
            ).delete(synchronize_session=False)
            logs = session.query(models.MedicationIntakeLog).filter(
                models.MedicationIntakeLog.user_id == user_id
            ).delete(synchronize_session=False)
            session.commit()

            logger.info(f"Wiped intake data for user {user_id}: {logs} logs, {snapshots} snapshots")
            return {"intake_logs_deleted": logs, "snapshots_deleted": snapshots}

        if db:
            return _wipe(db)

        with get_db_context() as session:
            return _wipe(session)


# Singleton instance
intake_service = IntakeService()
