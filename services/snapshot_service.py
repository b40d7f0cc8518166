"""
Snapshot Service
Generates and persists awareness snapshots.

For every medication of a user: metrics -> sufficiency flags -> constrained
AI pass, then one upsert per (user, time window). This service is the error
boundary of the whole pipeline: analysis failures end in a minimal snapshot,
and only a failure to write that minimal snapshot is raised.
"""

import logging
from typing import Dict, List, Optional, Any, Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from config import analysis_config
from services.pattern_analysis import PatternAnalysisService, pattern_analysis_service
from services.snapshot_repository import (
    SnapshotRepository,
    SQLAlchemySnapshotRepository,
    SnapshotPayload,
    SnapshotRow,
)
from tools.intake_metrics import TimeWindow, compute_intake_metrics_bundle
from tools.sufficiency import SufficiencyFlags, evaluate_signal_sufficiency


logger = logging.getLogger(__name__)


TIME_WINDOW_DAYS = analysis_config.TIME_WINDOW_DAYS


class SnapshotPersistenceError(RuntimeError):
    """Raised when even the minimal fallback snapshot cannot be stored"""


@dataclass
class SnapshotGenerationResult:
    success: bool
    snapshot_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "snapshot_id": self.snapshot_id}


def resolve_time_window(time_window: str, today: date) -> TimeWindow:
    """
    Resolve a symbolic window ("7d", "14d", "30d") to concrete dates

    The window covers exactly N calendar days ending today (inclusive).

    Raises:
        ValueError: for an unknown window key
    """
    if time_window not in TIME_WINDOW_DAYS:
        raise ValueError(
            f"Unknown time window '{time_window}'. Expected one of: {', '.join(TIME_WINDOW_DAYS)}"
        )
    days = TIME_WINDOW_DAYS[time_window]
    start = today - timedelta(days=days - 1)
    return TimeWindow.from_bounds(start, today)


def _utc_today() -> date:
    return datetime.utcnow().date()


class SnapshotService:
    """
    Orchestrates awareness snapshot generation for one user and window
    """

    def __init__(
        self,
        repository: Optional[SnapshotRepository] = None,
        analyzer: Optional[PatternAnalysisService] = None,
        clock: Callable[[], date] = _utc_today
    ):
        self.repository = repository or SQLAlchemySnapshotRepository()
        self.analyzer = analyzer or pattern_analysis_service
        self.clock = clock

    async def generate(self, user_id: int, time_window: str) -> SnapshotGenerationResult:
        """
        Generate and persist a snapshot

        Args:
            user_id: Owner of the medications and logs
            time_window: Symbolic window key, also the persistence key

        Returns:
            SnapshotGenerationResult; success is False when the minimal
            fallback snapshot had to be written

        Raises:
            ValueError: for an unknown time window key
            SnapshotPersistenceError: when the fallback write fails too
        """
        if time_window not in TIME_WINDOW_DAYS:
            raise ValueError(f"Unknown time window '{time_window}'")

        try:
            payload = await self._build_payload(user_id, time_window)
            row = self.repository.upsert_snapshot(user_id, time_window, payload)
            logger.info(
                f"Generated {time_window} snapshot {row.id} for user {user_id} "
                f"(data_sufficiency={payload.data_sufficiency})"
            )
            return SnapshotGenerationResult(success=True, snapshot_id=row.id)
        except Exception as e:
            logger.error(f"Failed to generate snapshot for user {user_id}: {e}", exc_info=True)

        try:
            row = self.repository.upsert_snapshot(user_id, time_window, SnapshotPayload.empty())
        except Exception as e:
            logger.critical(f"Unable to save fallback awareness snapshot for user {user_id}: {e}")
            raise SnapshotPersistenceError("Unable to save awareness snapshot") from e

        return SnapshotGenerationResult(success=False, snapshot_id=row.id)

    async def _build_payload(self, user_id: int, time_window: str) -> SnapshotPayload:
        window = resolve_time_window(time_window, self.clock())
        start = date.fromisoformat(window.start)
        end = date.fromisoformat(window.end)

        medications = self.repository.list_medications_with_schedules(user_id)
        if not medications:
            return SnapshotPayload.empty()

        patterns: List[Dict[str, Any]] = []
        signals: List[Dict[str, Any]] = []
        associations: List[Dict[str, Any]] = []
        flags = SufficiencyFlags()

        # At most one outbound AI call at a time
        for medication in medications:
            user_logs = self.repository.list_intake_logs(user_id, start, end)
            medication_logs = [log for log in user_logs if log.medication_id == medication.id]

            metrics = compute_intake_metrics_bundle(
                medication.id, medication_logs, medication.schedules, start, end
            )
            flags = flags.merge(evaluate_signal_sufficiency(medication_logs))

            result = await self.analyzer.analyze_intake_patterns(metrics)
            patterns.extend(result.medication_patterns)
            signals.extend(result.adherence_signals)
            associations.extend(result.observation_associations)

        return SnapshotPayload(
            medication_patterns=patterns,
            adherence_signals=signals,
            observation_associations=associations,
            data_sufficiency=flags.any() or bool(signals) or bool(associations),
        )

    def get_latest_snapshot(self, user_id: int, time_window: str) -> Optional[SnapshotRow]:
        """Read path: the key is used exactly as given"""
        return self.repository.get_latest_snapshot(user_id, time_window)

    def clear_snapshots(self, user_id: int) -> int:
        return self.repository.delete_snapshots_for_user(user_id)


# Singleton instance
snapshot_service = SnapshotService()
