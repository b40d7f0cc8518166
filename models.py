"""
Database Models
SQLAlchemy ORM models for IntakeAware
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Date, Enum, Index, UniqueConstraint, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum

from database import Base


# ==================== ENUMS ====================

class TimeSlot(str, PyEnum):
    """Categorical time slot of a medication schedule"""
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"
    NIGHT = "NIGHT"


class IntakeStatus(str, PyEnum):
    """Outcome recorded for a scheduled dose"""
    TAKEN = "TAKEN"
    MISSED = "MISSED"


# ==================== MODELS ====================

class User(Base):
    """Patient account owning medications, logs and snapshots"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    medications = relationship("Medication", back_populates="user", cascade="all, delete-orphan")
    intake_logs = relationship("MedicationIntakeLog", back_populates="user", cascade="all, delete-orphan")
    awareness_snapshots = relationship("AwarenessSnapshot", back_populates="user", cascade="all, delete-orphan")


class Medication(Base):
    """Medication tracked by a user"""
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="medications")
    schedules = relationship(
        "MedicationSchedule",
        back_populates="medication",
        cascade="all, delete-orphan",
        order_by="MedicationSchedule.created_at",
    )
    intake_logs = relationship("MedicationIntakeLog", back_populates="medication", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_medications_user", "user_id"),
    )


class MedicationSchedule(Base):
    """Recurring time slot for a medication"""
    __tablename__ = "medication_schedules"

    id = Column(Integer, primary_key=True, index=True)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)

    time_slot = Column(Enum(TimeSlot), nullable=False)
    frequency = Column(String(100), nullable=False)  # "once-daily"
    timing = Column(String(200), nullable=False)     # "08:00 with breakfast"
    note = Column(Text)

    # Counts toward expected doses from this day onward
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    medication = relationship("Medication", back_populates="schedules")
    intake_logs = relationship("MedicationIntakeLog", back_populates="schedule", cascade="all, delete-orphan")


class MedicationIntakeLog(Base):
    """Immutable record of a dose taken or missed on one day"""
    __tablename__ = "medication_intake_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    medication_id = Column(Integer, ForeignKey("medications.id"), nullable=False)
    schedule_id = Column(Integer, ForeignKey("medication_schedules.id"), nullable=False)

    scheduled_time = Column(Enum(TimeSlot), nullable=False)
    actual_time = Column(DateTime)
    status = Column(Enum(IntakeStatus), nullable=False)
    observation = Column(Text)
    log_date = Column(Date, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="intake_logs")
    medication = relationship("Medication", back_populates="intake_logs")
    schedule = relationship("MedicationSchedule", back_populates="intake_logs")

    __table_args__ = (
        UniqueConstraint("schedule_id", "log_date", name="uq_intake_schedule_day"),
        Index("ix_intake_logs_user_date", "user_id", "log_date"),
    )


class AwarenessSnapshot(Base):
    """Latest derived findings for one user and time window"""
    __tablename__ = "awareness_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    time_window = Column(String(20), nullable=False)  # "7d", "14d", "30d"

    medication_patterns = Column(JSON, default=list)
    adherence_signals = Column(JSON, default=list)
    observation_associations = Column(JSON, default=list)
    data_sufficiency = Column(Boolean, nullable=False, default=False)

    generated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="awareness_snapshots")

    __table_args__ = (
        UniqueConstraint("user_id", "time_window", name="uq_snapshot_user_window"),
    )
