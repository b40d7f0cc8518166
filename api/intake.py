"""
Intake API Router
Endpoints for immutable intake logging
"""

import logging
from typing import Optional
from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user_id, get_snapshot_refresh_queue, services
from api.schemas.intake import (
    IntakeLogCreate,
    IntakeLogResponse,
    ScheduleLogStatusList,
    ScheduleLogStatus,
)
from models import IntakeStatus
from services.intake_service import DuplicateIntakeLogError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/intake", tags=["intake"])


@router.post("/log", response_model=IntakeLogResponse, status_code=status.HTTP_201_CREATED)
async def log_intake(
    log_data: IntakeLogCreate,
    db: Session = Depends(get_db),
    refresh_queue=Depends(get_snapshot_refresh_queue)
):
    """
    Log a TAKEN or MISSED intake for one schedule and day.
    The user's awareness snapshot is refreshed in the background.
    """
    intake_service = services.get_intake_service()

    try:
        log = await intake_service.log_intake(
            user_id=log_data.user_id,
            medication_id=log_data.medication_id,
            schedule_id=log_data.schedule_id,
            status=IntakeStatus(log_data.status.value),
            observation=log_data.observation,
            actual_time=log_data.actual_time,
            log_date=log_data.log_date,
            db=db
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DuplicateIntakeLogError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    refresh_queue.schedule(log_data.user_id)

    return log


@router.get("/{user_id}/schedules", response_model=ScheduleLogStatusList)
async def get_schedules_with_log_status(
    user_id: int = Depends(get_current_user_id),
    log_date: Optional[date] = Query(None, description="Day to check, defaults to today (UTC)"),
    db: Session = Depends(get_db)
):
    """
    List the user's schedules and whether each is logged for the day
    """
    intake_service = services.get_intake_service()
    day = log_date or datetime.utcnow().date()

    schedules = await intake_service.get_schedules_with_log_status(
        user_id=user_id,
        log_date=day,
        db=db
    )

    return ScheduleLogStatusList(
        user_id=user_id,
        date=day.isoformat(),
        schedules=[ScheduleLogStatus(**s) for s in schedules]
    )
