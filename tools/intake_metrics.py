"""
Intake Metrics
Deterministic feature extraction over immutable intake logs.

Every function here is pure: no database access, no clock, no network.
Callers pass the logs and schedules of one medication together with an
inclusive day window and get back plain dataclasses.
"""

import math
import re
from typing import List, Dict, Any, Optional, Iterable, Union
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta, timezone
from collections import defaultdict

from config import analysis_config


DateLike = Union[date, datetime, str]

TAKEN = "TAKEN"
MISSED = "MISSED"

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


# ==================== INPUT RECORDS ====================

@dataclass(frozen=True)
class ScheduleRecord:
    """Schedule definition as seen by the metrics engine"""
    id: int
    medication_id: int
    time_slot: str
    created_at: datetime
    frequency: str = ""
    timing: str = ""
    note: Optional[str] = None


@dataclass(frozen=True)
class IntakeLogRecord:
    """One immutable intake log entry"""
    medication_id: int
    schedule_id: int
    status: str
    log_date: str
    actual_time: Optional[datetime] = None
    observation: Optional[str] = None
    scheduled_time: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class MedicationRecord:
    """Medication with its schedules"""
    id: int
    name: str = ""
    schedules: List[ScheduleRecord] = field(default_factory=list)


# ==================== DATE HELPERS ====================

def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _as_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return _as_utc_naive(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_date_string(value: DateLike) -> str:
    """Canonical YYYY-MM-DD string for a date, datetime (UTC) or string"""
    return _as_date(value).isoformat()


def each_day_inclusive(start: DateLike, end: DateLike) -> List[str]:
    """All calendar days from start to end, both included"""
    current = _as_date(start)
    last = _as_date(end)
    days = []
    while current <= last:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def canonical_slot_datetime(day: str, time_slot: Any) -> datetime:
    """Canonical UTC datetime of a time slot on a given day"""
    slot_day = date.fromisoformat(day)
    hour = analysis_config.TIME_SLOT_HOURS[_enum_value(time_slot)]
    return datetime(slot_day.year, slot_day.month, slot_day.day, hour)


def _abs_minutes_diff(slot: datetime, actual: datetime) -> int:
    # Half-minutes round up on the signed slot - actual difference
    minutes = (_as_utc_naive(slot) - _as_utc_naive(actual)).total_seconds() / 60
    return abs(math.floor(minutes + 0.5))


def _is_status(log: Any, status: str) -> bool:
    return _enum_value(log.status) == status


def _log_day(log: Any) -> str:
    return to_date_string(log.log_date)


# ==================== OUTPUT TYPES ====================

@dataclass
class TimeWindow:
    """Inclusive day window"""
    start: str
    end: str
    days: int

    @classmethod
    def from_bounds(cls, window_start: DateLike, window_end: DateLike) -> "TimeWindow":
        return cls(
            start=to_date_string(window_start),
            end=to_date_string(window_end),
            days=len(each_day_inclusive(window_start, window_end)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "days": self.days}


@dataclass
class AdherenceRateMetric:
    medication_id: int
    time_window: TimeWindow
    expected_count: int
    taken_count: int
    adherence_rate: float  # 0..1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "time_window": self.time_window.to_dict(),
            "expected_count": self.expected_count,
            "taken_count": self.taken_count,
            "adherence_rate": self.adherence_rate,
        }


@dataclass
class MissedStreakPerSchedule:
    schedule_id: int
    longest_missed_streak: int
    current_missed_streak: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "longest_missed_streak": self.longest_missed_streak,
            "current_missed_streak": self.current_missed_streak,
        }


@dataclass
class MissedStreaksMetric:
    medication_id: int
    time_window: TimeWindow
    per_schedule: List[MissedStreakPerSchedule]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "time_window": self.time_window.to_dict(),
            "per_schedule": [s.to_dict() for s in self.per_schedule],
        }


@dataclass
class TimingVariancePerSchedule:
    schedule_id: int
    samples: int
    avg_abs_minutes: Optional[float]  # None when no timed samples

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "samples": self.samples,
            "avg_abs_minutes": self.avg_abs_minutes,
        }


@dataclass
class TimingVarianceMetric:
    medication_id: int
    per_schedule: List[TimingVariancePerSchedule]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "per_schedule": [s.to_dict() for s in self.per_schedule],
        }


@dataclass
class ConsistencyPerSchedule:
    schedule_id: int
    daily_taken_counts: List[int]
    daily_missed_counts: List[int]
    variance_taken_ratio: Optional[float]  # None for an empty window

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "daily_taken_counts": list(self.daily_taken_counts),
            "daily_missed_counts": list(self.daily_missed_counts),
            "variance_taken_ratio": self.variance_taken_ratio,
        }


@dataclass
class IntakeConsistencyMetric:
    medication_id: int
    time_window: TimeWindow
    per_schedule: List[ConsistencyPerSchedule]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "time_window": self.time_window.to_dict(),
            "per_schedule": [s.to_dict() for s in self.per_schedule],
        }


@dataclass
class ObservationFrequenciesMetric:
    medication_id: int
    time_window: TimeWindow
    frequencies: Dict[str, int]

    def top_keywords(self, limit: int) -> List[tuple]:
        """Most frequent keywords, ties kept in first-seen order"""
        return sorted(self.frequencies.items(), key=lambda kv: kv[1], reverse=True)[:limit]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "time_window": self.time_window.to_dict(),
            "frequencies": dict(self.frequencies),
        }


@dataclass
class IntakeMetricsBundle:
    """All five metric views for one medication and window"""
    medication_id: int
    time_window: TimeWindow
    adherence: AdherenceRateMetric
    missed: MissedStreaksMetric
    timing: TimingVarianceMetric
    consistency: IntakeConsistencyMetric
    observations: ObservationFrequenciesMetric
    logs_in_window: int = 0

    @property
    def schedule_count(self) -> int:
        return len(self.missed.per_schedule)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medication_id": self.medication_id,
            "time_window": self.time_window.to_dict(),
            "adherence": self.adherence.to_dict(),
            "missed": self.missed.to_dict(),
            "timing": self.timing.to_dict(),
            "consistency": self.consistency.to_dict(),
            "observations": self.observations.to_dict(),
            "logs_in_window": self.logs_in_window,
        }


# ==================== METRICS ====================

def compute_adherence_rate(
    medication_id: int,
    logs: Iterable[Any],
    schedules: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> AdherenceRateMetric:
    """
    Adherence rate = TAKEN / expected

    A schedule contributes one expected dose for every day in the window on
    or after its creation day, so schedules added mid-window do not inflate
    the denominator retroactively. The rate is 0 when nothing is expected;
    use expected_count to tell that apart from real non-adherence.
    """
    days = each_day_inclusive(window_start, window_end)
    day_set = set(days)
    created_days = [to_date_string(s.created_at) for s in schedules]

    expected = 0
    for day in days:
        for created_day in created_days:
            if created_day <= day:
                expected += 1

    taken = sum(
        1 for log in logs
        if log.medication_id == medication_id
        and _is_status(log, TAKEN)
        and _log_day(log) in day_set
    )

    return AdherenceRateMetric(
        medication_id=medication_id,
        time_window=TimeWindow.from_bounds(window_start, window_end),
        expected_count=expected,
        taken_count=taken,
        adherence_rate=0 if expected == 0 else taken / expected,
    )


def compute_missed_streaks(
    medication_id: int,
    logs: Iterable[Any],
    schedules: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> MissedStreaksMetric:
    """
    Missed-dose streaks per schedule, counting explicit MISSED logs only.

    A day without any log breaks a streak but is never counted as missed.
    """
    days = each_day_inclusive(window_start, window_end)
    missed_days = {
        (log.schedule_id, _log_day(log))
        for log in logs
        if _is_status(log, MISSED)
    }

    per_schedule = []
    for schedule in schedules:
        longest = 0
        current = 0
        for day in days:
            if (schedule.id, day) in missed_days:
                current += 1
                longest = max(longest, current)
            else:
                current = 0
        per_schedule.append(MissedStreakPerSchedule(
            schedule_id=schedule.id,
            longest_missed_streak=longest,
            current_missed_streak=current,
        ))

    return MissedStreaksMetric(
        medication_id=medication_id,
        time_window=TimeWindow.from_bounds(window_start, window_end),
        per_schedule=per_schedule,
    )


def compute_timing_variance(
    medication_id: int,
    logs: Iterable[Any],
    schedules: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> TimingVarianceMetric:
    """
    Mean absolute minutes between the actual intake time and the canonical
    slot time, per schedule. Only TAKEN logs with an actual time are samples.
    """
    day_set = set(each_day_inclusive(window_start, window_end))
    logs = list(logs)

    per_schedule = []
    for schedule in schedules:
        samples = []
        for log in logs:
            if log.schedule_id != schedule.id:
                continue
            if not _is_status(log, TAKEN) or log.actual_time is None:
                continue
            day = _log_day(log)
            if day not in day_set:
                continue
            slot_time = canonical_slot_datetime(day, schedule.time_slot)
            samples.append(_abs_minutes_diff(slot_time, log.actual_time))

        per_schedule.append(TimingVariancePerSchedule(
            schedule_id=schedule.id,
            samples=len(samples),
            avg_abs_minutes=(sum(samples) / len(samples)) if samples else None,
        ))

    return TimingVarianceMetric(medication_id=medication_id, per_schedule=per_schedule)


def compute_intake_consistency(
    medication_id: int,
    logs: Iterable[Any],
    schedules: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> IntakeConsistencyMetric:
    """
    Day-by-day TAKEN/MISSED indicators per schedule and the population
    variance of the daily taken ratio.
    """
    days = each_day_inclusive(window_start, window_end)
    statuses = defaultdict(set)
    for log in logs:
        statuses[(log.schedule_id, _log_day(log))].add(_enum_value(log.status))

    per_schedule = []
    for schedule in schedules:
        daily_taken = [1 if TAKEN in statuses[(schedule.id, day)] else 0 for day in days]
        daily_missed = [1 if MISSED in statuses[(schedule.id, day)] else 0 for day in days]

        ratios = []
        for taken, missed in zip(daily_taken, daily_missed):
            denominator = taken + missed
            ratios.append(taken / denominator if denominator > 0 else 0)

        if ratios:
            mean = sum(ratios) / len(ratios)
            variance = sum((r - mean) ** 2 for r in ratios) / len(ratios)
        else:
            variance = None

        per_schedule.append(ConsistencyPerSchedule(
            schedule_id=schedule.id,
            daily_taken_counts=daily_taken,
            daily_missed_counts=daily_missed,
            variance_taken_ratio=variance,
        ))

    return IntakeConsistencyMetric(
        medication_id=medication_id,
        time_window=TimeWindow.from_bounds(window_start, window_end),
        per_schedule=per_schedule,
    )


def tokenize_observation(text: Optional[str]) -> List[str]:
    """Lowercased alphanumeric tokens of at least MIN_KEYWORD_LENGTH chars"""
    if not text:
        return []
    return [
        token for token in _TOKEN_SPLIT.split(text.lower())
        if len(token) >= analysis_config.MIN_KEYWORD_LENGTH
    ]


def compute_observation_frequencies(
    medication_id: int,
    logs: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> ObservationFrequenciesMetric:
    """Raw keyword counts over in-window observations (no stemming or stopwords)"""
    day_set = set(each_day_inclusive(window_start, window_end))
    frequencies: Dict[str, int] = {}

    for log in logs:
        if log.medication_id != medication_id:
            continue
        if _log_day(log) not in day_set:
            continue
        for token in tokenize_observation(log.observation):
            frequencies[token] = frequencies.get(token, 0) + 1

    return ObservationFrequenciesMetric(
        medication_id=medication_id,
        time_window=TimeWindow.from_bounds(window_start, window_end),
        frequencies=frequencies,
    )


def count_logs_in_window(
    medication_id: int,
    logs: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> int:
    day_set = set(each_day_inclusive(window_start, window_end))
    return sum(
        1 for log in logs
        if log.medication_id == medication_id and _log_day(log) in day_set
    )


def compute_intake_metrics_bundle(
    medication_id: int,
    logs: Iterable[Any],
    schedules: Iterable[Any],
    window_start: DateLike,
    window_end: DateLike
) -> IntakeMetricsBundle:
    """
    Bundle all metrics for a single medication

    Args:
        medication_id: Medication the logs belong to
        logs: Intake logs already filtered to this medication
        schedules: The medication's schedules
        window_start: First day of the window (inclusive)
        window_end: Last day of the window (inclusive)

    Returns:
        IntakeMetricsBundle
    """
    logs = list(logs)
    schedules = list(schedules)

    adherence = compute_adherence_rate(medication_id, logs, schedules, window_start, window_end)
    return IntakeMetricsBundle(
        medication_id=medication_id,
        time_window=adherence.time_window,
        adherence=adherence,
        missed=compute_missed_streaks(medication_id, logs, schedules, window_start, window_end),
        timing=compute_timing_variance(medication_id, logs, schedules, window_start, window_end),
        consistency=compute_intake_consistency(medication_id, logs, schedules, window_start, window_end),
        observations=compute_observation_frequencies(medication_id, logs, window_start, window_end),
        logs_in_window=count_logs_in_window(medication_id, logs, window_start, window_end),
    )
