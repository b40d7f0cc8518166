"""
Data Sufficiency
Count-based gates deciding whether intake data carries enough signal.

Two independent gates live here:
- per-signal flags evaluated on the raw logs, used for the snapshot's
  overall data_sufficiency
- a coverage bucket, used only to decide whether the AI step runs at all

They can disagree for the same medication.
"""

from typing import Iterable, Any, Dict
from dataclasses import dataclass
from enum import Enum

from config import analysis_config


class SufficiencyLevel(str, Enum):
    """Coverage bucket of logs against expected logs"""
    INSUFFICIENT = "insufficient"
    MINIMAL = "minimal"
    ADEQUATE = "adequate"
    ROBUST = "robust"


@dataclass
class SufficiencyFlags:
    """Per-signal-type sufficiency"""
    adherence: bool = False
    timing: bool = False
    observation: bool = False

    def any(self) -> bool:
        return self.adherence or self.timing or self.observation

    def merge(self, other: "SufficiencyFlags") -> "SufficiencyFlags":
        """Disjunctive accumulation across medications"""
        return SufficiencyFlags(
            adherence=self.adherence or other.adherence,
            timing=self.timing or other.timing,
            observation=self.observation or other.observation,
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "adherence": self.adherence,
            "timing": self.timing,
            "observation": self.observation,
        }


def _is_taken(log: Any) -> bool:
    return getattr(log.status, "value", log.status) == "TAKEN"


def evaluate_signal_sufficiency(logs: Iterable[Any]) -> SufficiencyFlags:
    """
    Evaluate the three per-signal checks against raw logs

    Args:
        logs: Logs of one medication for the analysed range

    Returns:
        SufficiencyFlags
    """
    logs = list(logs)

    timed_taken = [log for log in logs if _is_taken(log) and log.actual_time is not None]
    observations = [log.observation for log in logs if log.observation]

    return SufficiencyFlags(
        adherence=len(logs) >= analysis_config.MIN_LOGS_FOR_ADHERENCE,
        timing=len(timed_taken) >= analysis_config.MIN_TIMED_TAKEN_FOR_TIMING,
        observation=(
            len(observations) >= analysis_config.MIN_OBSERVATIONS_FOR_ASSOCIATION
            or len(set(observations)) > 0
        ),
    )


def coverage_ratio(logs_in_window: int, num_schedules: int, days_in_window: int) -> float:
    expected_logs = num_schedules * days_in_window
    return logs_in_window / (expected_logs or 1)


def assess_coverage(logs_in_window: int, num_schedules: int, days_in_window: int) -> SufficiencyLevel:
    """Bucket logs / (schedules x days) into a sufficiency level"""
    coverage = coverage_ratio(logs_in_window, num_schedules, days_in_window)

    if coverage < analysis_config.COVERAGE_INSUFFICIENT_BELOW:
        return SufficiencyLevel.INSUFFICIENT
    if coverage < analysis_config.COVERAGE_MINIMAL_BELOW:
        return SufficiencyLevel.MINIMAL
    if coverage < analysis_config.COVERAGE_ADEQUATE_BELOW:
        return SufficiencyLevel.ADEQUATE
    return SufficiencyLevel.ROBUST


def is_sufficient_for_analysis(level: SufficiencyLevel) -> bool:
    return level not in (SufficiencyLevel.INSUFFICIENT, SufficiencyLevel.MINIMAL)
