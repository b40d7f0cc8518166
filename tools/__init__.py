"""
Tools Package
Deterministic intake metrics and data sufficiency gates
"""

from .intake_metrics import (
    ScheduleRecord,
    IntakeLogRecord,
    MedicationRecord,
    TimeWindow,
    AdherenceRateMetric,
    MissedStreaksMetric,
    TimingVarianceMetric,
    IntakeConsistencyMetric,
    ObservationFrequenciesMetric,
    IntakeMetricsBundle,
    compute_adherence_rate,
    compute_missed_streaks,
    compute_timing_variance,
    compute_intake_consistency,
    compute_observation_frequencies,
    compute_intake_metrics_bundle,
)

from .sufficiency import (
    SufficiencyLevel,
    SufficiencyFlags,
    evaluate_signal_sufficiency,
    assess_coverage,
    is_sufficient_for_analysis,
)

__all__ = [
    # Intake Metrics
    "ScheduleRecord",
    "IntakeLogRecord",
    "MedicationRecord",
    "TimeWindow",
    "AdherenceRateMetric",
    "MissedStreaksMetric",
    "TimingVarianceMetric",
    "IntakeConsistencyMetric",
    "ObservationFrequenciesMetric",
    "IntakeMetricsBundle",
    "compute_adherence_rate",
    "compute_missed_streaks",
    "compute_timing_variance",
    "compute_intake_consistency",
    "compute_observation_frequencies",
    "compute_intake_metrics_bundle",

    # Sufficiency
    "SufficiencyLevel",
    "SufficiencyFlags",
    "evaluate_signal_sufficiency",
    "assess_coverage",
    "is_sufficient_for_analysis",
]
