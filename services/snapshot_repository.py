"""
Snapshot Repository
Persistence boundary used by the snapshot orchestrator
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Callable, ContextManager
from dataclasses import dataclass
from datetime import datetime, date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from database import get_db_context
import models
from tools.intake_metrics import (
    MedicationRecord,
    ScheduleRecord,
    IntakeLogRecord,
    to_date_string,
)


logger = logging.getLogger(__name__)


@dataclass
class SnapshotPayload:
    """Content written for one (user, time window) snapshot"""
    medication_patterns: List[Dict[str, Any]]
    adherence_signals: List[Dict[str, Any]]
    observation_associations: List[Dict[str, Any]]
    data_sufficiency: bool

    @classmethod
    def empty(cls) -> "SnapshotPayload":
        return cls(
            medication_patterns=[],
            adherence_signals=[],
            observation_associations=[],
            data_sufficiency=False,
        )


@dataclass
class SnapshotRow:
    """Stored awareness snapshot"""
    id: int
    user_id: int
    time_window: str
    medication_patterns: List[Dict[str, Any]]
    adherence_signals: List[Dict[str, Any]]
    observation_associations: List[Dict[str, Any]]
    data_sufficiency: bool
    generated_at: datetime
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "time_window": self.time_window,
            "medication_patterns": self.medication_patterns,
            "adherence_signals": self.adherence_signals,
            "observation_associations": self.observation_associations,
            "data_sufficiency": self.data_sufficiency,
            "generated_at": self.generated_at.isoformat(),
            "created_at": self.created_at.isoformat(),
        }


class SnapshotRepository(ABC):
    """Inputs and outputs the snapshot pipeline needs from storage"""

    @abstractmethod
    def list_medications_with_schedules(self, user_id: int) -> List[MedicationRecord]:
        ...

    @abstractmethod
    def list_intake_logs(self, user_id: int, start_date: date, end_date: date) -> List[IntakeLogRecord]:
        ...

    @abstractmethod
    def upsert_snapshot(self, user_id: int, time_window: str, payload: SnapshotPayload) -> SnapshotRow:
        ...

    @abstractmethod
    def get_latest_snapshot(self, user_id: int, time_window: str) -> Optional[SnapshotRow]:
        ...

    @abstractmethod
    def delete_snapshots_for_user(self, user_id: int) -> int:
        ...


# ==================== ORM CONVERSION ====================

def schedule_to_record(schedule: models.MedicationSchedule) -> ScheduleRecord:
    return ScheduleRecord(
        id=schedule.id,
        medication_id=schedule.medication_id,
        time_slot=schedule.time_slot.value,
        created_at=schedule.created_at,
        frequency=schedule.frequency,
        timing=schedule.timing,
        note=schedule.note,
    )


def log_to_record(log: models.MedicationIntakeLog) -> IntakeLogRecord:
    return IntakeLogRecord(
        id=log.id,
        medication_id=log.medication_id,
        schedule_id=log.schedule_id,
        status=log.status.value,
        log_date=to_date_string(log.log_date),
        actual_time=log.actual_time,
        observation=log.observation,
        scheduled_time=log.scheduled_time.value if log.scheduled_time else None,
    )


def snapshot_to_row(snapshot: models.AwarenessSnapshot) -> SnapshotRow:
    return SnapshotRow(
        id=snapshot.id,
        user_id=snapshot.user_id,
        time_window=snapshot.time_window,
        medication_patterns=list(snapshot.medication_patterns or []),
        adherence_signals=list(snapshot.adherence_signals or []),
        observation_associations=list(snapshot.observation_associations or []),
        data_sufficiency=bool(snapshot.data_sufficiency),
        generated_at=snapshot.generated_at,
        created_at=snapshot.created_at,
    )


class SQLAlchemySnapshotRepository(SnapshotRepository):
    """
    SQLAlchemy-backed repository

    Every call runs in its own short transaction obtained from session_scope,
    so it is safe to use from background tasks.
    """

    def __init__(
        self,
        session_scope: Callable[[], ContextManager[Session]] = get_db_context,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.session_scope = session_scope
        self.clock = clock

    def list_medications_with_schedules(self, user_id: int) -> List[MedicationRecord]:
        with self.session_scope() as session:
            medications = session.query(models.Medication).options(
                selectinload(models.Medication.schedules)
            ).filter(
                models.Medication.user_id == user_id
            ).order_by(models.Medication.id).all()

            return [
                MedicationRecord(
                    id=med.id,
                    name=med.name,
                    schedules=[schedule_to_record(s) for s in med.schedules],
                )
                for med in medications
            ]

    def list_intake_logs(self, user_id: int, start_date: date, end_date: date) -> List[IntakeLogRecord]:
        with self.session_scope() as session:
            logs = session.query(models.MedicationIntakeLog).filter(
                models.MedicationIntakeLog.user_id == user_id,
                models.MedicationIntakeLog.log_date >= start_date,
                models.MedicationIntakeLog.log_date <= end_date,
            ).order_by(models.MedicationIntakeLog.log_date).all()

            return [log_to_record(log) for log in logs]

    def _find_snapshot(self, session: Session, user_id: int, time_window: str) -> Optional[models.AwarenessSnapshot]:
        return session.query(models.AwarenessSnapshot).filter(
            models.AwarenessSnapshot.user_id == user_id,
            models.AwarenessSnapshot.time_window == time_window,
        ).first()

    @staticmethod
    def _apply_payload(snapshot: models.AwarenessSnapshot, payload: SnapshotPayload, now: datetime) -> None:
        snapshot.medication_patterns = list(payload.medication_patterns)
        snapshot.adherence_signals = list(payload.adherence_signals)
        snapshot.observation_associations = list(payload.observation_associations)
        snapshot.data_sufficiency = payload.data_sufficiency
        snapshot.generated_at = now

    def upsert_snapshot(self, user_id: int, time_window: str, payload: SnapshotPayload) -> SnapshotRow:
        """
        Insert or update the (user, time window) snapshot in place

        When a concurrent writer inserts the row between our select and our
        insert, the insert is rolled back and that row is updated instead.
        """
        with self.session_scope() as session:
            now = self.clock()
            snapshot = self._find_snapshot(session, user_id, time_window)

            if snapshot is None:
                snapshot = models.AwarenessSnapshot(
                    user_id=user_id,
                    time_window=time_window,
                    created_at=now,
                )
                self._apply_payload(snapshot, payload, now)
                session.add(snapshot)
                try:
                    session.flush()
                except IntegrityError:
                    session.rollback()
                    logger.info(f"Concurrent {time_window} snapshot insert for user {user_id}; updating instead")
                    snapshot = self._find_snapshot(session, user_id, time_window)
                    if snapshot is None:
                        raise

            self._apply_payload(snapshot, payload, now)
            session.flush()
            session.refresh(snapshot)
            return snapshot_to_row(snapshot)

    def get_latest_snapshot(self, user_id: int, time_window: str) -> Optional[SnapshotRow]:
        with self.session_scope() as session:
            snapshot = session.query(models.AwarenessSnapshot).filter(
                models.AwarenessSnapshot.user_id == user_id,
                models.AwarenessSnapshot.time_window == time_window,
            ).first()
            return snapshot_to_row(snapshot) if snapshot else None

    def delete_snapshots_for_user(self, user_id: int) -> int:
        with self.session_scope() as session:
            deleted = session.query(models.AwarenessSnapshot).filter(
                models.AwarenessSnapshot.user_id == user_id
            ).delete(synchronize_session=False)
            logger.info(f"Deleted {deleted} awareness snapshots for user {user_id}")
            return deleted
