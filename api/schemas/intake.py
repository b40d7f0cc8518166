"""
Intake Schemas
Pydantic models for intake logging API requests and responses
"""

from typing import Optional, List
from datetime import datetime, date
from pydantic import BaseModel, Field, ConfigDict, model_validator
from enum import Enum


class IntakeStatusEnum(str, Enum):
    """Intake status values"""
    TAKEN = "TAKEN"
    MISSED = "MISSED"


class TimeSlotEnum(str, Enum):
    """Schedule time slots"""
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    EVENING = "EVENING"
    NIGHT = "NIGHT"


# ==================== REQUEST SCHEMAS ====================

class IntakeLogCreate(BaseModel):
    """Schema for logging an intake event"""
    user_id: int
    medication_id: int
    schedule_id: int
    status: IntakeStatusEnum
    actual_time: Optional[datetime] = None
    observation: Optional[str] = Field(None, max_length=300)
    log_date: Optional[date] = None

    @model_validator(mode="after")
    def check_time_fields(self) -> "IntakeLogCreate":
        if self.status == IntakeStatusEnum.MISSED and self.actual_time is not None:
            raise ValueError("actual_time is only allowed for TAKEN logs")
        if self.log_date is not None and self.log_date > datetime.utcnow().date():
            raise ValueError("log_date cannot be in the future")
        return self


# ==================== RESPONSE SCHEMAS ====================

class IntakeLogResponse(BaseModel):
    """Schema for intake log response"""
    id: int
    user_id: int
    medication_id: int
    schedule_id: int
    scheduled_time: TimeSlotEnum
    actual_time: Optional[datetime] = None
    status: IntakeStatusEnum
    observation: Optional[str] = None
    log_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ScheduleLogStatus(BaseModel):
    """Schedule with today's log status"""
    schedule_id: int
    medication_id: int
    medication_name: str
    time_slot: str
    frequency: str
    timing: str
    note: Optional[str] = None
    already_logged: bool


class ScheduleLogStatusList(BaseModel):
    user_id: int
    date: str
    schedules: List[ScheduleLogStatus]
