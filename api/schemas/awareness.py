"""
Awareness Schemas
Pydantic models for awareness snapshot API responses
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field


NOT_ENOUGH_DATA_MESSAGE = "Not enough data yet"


class SnapshotGenerationResponse(BaseModel):
    """Result of a synchronous generation run"""
    success: bool
    snapshot_id: int


class AwarenessSnapshotView(BaseModel):
    """
    Snapshot as rendered by pages

    A missing snapshot and an insufficient one look the same: has_insights is
    False and message carries the neutral placeholder.
    """
    user_id: int
    time_window: str
    has_insights: bool
    message: Optional[str] = None
    snapshot_id: Optional[int] = None
    data_sufficiency: bool = False
    medication_patterns: List[Dict[str, Any]] = Field(default_factory=list)
    adherence_signals: List[Dict[str, Any]] = Field(default_factory=list)
    observation_associations: List[Dict[str, Any]] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DataWipeResponse(BaseModel):
    user_id: int
    intake_logs_deleted: int
    snapshots_deleted: int
