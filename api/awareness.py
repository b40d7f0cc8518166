"""
Awareness API Router
Endpoints for awareness snapshot generation and retrieval
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user_id, get_snapshot_service, services
from api.schemas.awareness import (
    SnapshotGenerationResponse,
    AwarenessSnapshotView,
    DataWipeResponse,
    NOT_ENOUGH_DATA_MESSAGE,
)
from config import settings
from services.snapshot_service import SnapshotPersistenceError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/awareness", tags=["awareness"])


@router.post("/{user_id}/generate", response_model=SnapshotGenerationResponse)
async def generate_snapshot(
    user_id: int = Depends(get_current_user_id),
    window: str = Query(settings.SNAPSHOT_DEFAULT_WINDOW, description="7d, 14d or 30d"),
    snapshot_service=Depends(get_snapshot_service)
):
    """
    Generate the awareness snapshot synchronously
    """
    try:
        result = await snapshot_service.generate(user_id, window)
    except SnapshotPersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SnapshotGenerationResponse(**result.to_dict())


@router.get("/{user_id}", response_model=AwarenessSnapshotView)
async def get_latest_snapshot(
    user_id: int = Depends(get_current_user_id),
    window: str = Query(settings.SNAPSHOT_DEFAULT_WINDOW, description="Snapshot key, used as given"),
    snapshot_service=Depends(get_snapshot_service)
):
    """
    Latest snapshot for a window.
    No snapshot and an insufficient snapshot both render as "not enough data yet".
    """
    snapshot = snapshot_service.get_latest_snapshot(user_id, window)

    if snapshot is None:
        return AwarenessSnapshotView(
            user_id=user_id,
            time_window=window,
            has_insights=False,
            message=NOT_ENOUGH_DATA_MESSAGE,
        )

    return AwarenessSnapshotView(
        user_id=user_id,
        time_window=snapshot.time_window,
        has_insights=snapshot.data_sufficiency,
        message=None if snapshot.data_sufficiency else NOT_ENOUGH_DATA_MESSAGE,
        snapshot_id=snapshot.id,
        data_sufficiency=snapshot.data_sufficiency,
        medication_patterns=snapshot.medication_patterns,
        adherence_signals=snapshot.adherence_signals,
        observation_associations=snapshot.observation_associations,
        generated_at=snapshot.generated_at,
        created_at=snapshot.created_at,
    )


@router.delete("/{user_id}", response_model=DataWipeResponse)
async def reset_intake_data(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Delete the user's intake logs and awareness snapshots
    """
    intake_service = services.get_intake_service()
    result = await intake_service.wipe_user_intake_data(user_id=user_id, db=db)
    return DataWipeResponse(user_id=user_id, **result)
