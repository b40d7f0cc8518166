"""
Services Module
Business logic layer for the IntakeAware application
"""

from services.llm_service import LLMService, llm_service
from services.intake_service import IntakeService, DuplicateIntakeLogError, intake_service
from services.pattern_analysis import (
    PatternAnalysisService,
    AIPatternAnalysisResult,
    pattern_analysis_service,
)
from services.snapshot_repository import (
    SnapshotRepository,
    SQLAlchemySnapshotRepository,
    SnapshotPayload,
    SnapshotRow,
)
from services.snapshot_service import (
    SnapshotService,
    SnapshotGenerationResult,
    SnapshotPersistenceError,
    snapshot_service,
)


__all__ = [
    # Service classes
    "LLMService",
    "IntakeService",
    "PatternAnalysisService",
    "SnapshotService",
    # Persistence
    "SnapshotRepository",
    "SQLAlchemySnapshotRepository",
    "SnapshotPayload",
    "SnapshotRow",
    # Results and errors
    "AIPatternAnalysisResult",
    "SnapshotGenerationResult",
    "SnapshotPersistenceError",
    "DuplicateIntakeLogError",
    # Singleton instances
    "llm_service",
    "intake_service",
    "pattern_analysis_service",
    "snapshot_service",
]
