"""
Tests for Intake Metrics
Tests the deterministic metric functions over intake logs
"""

import pytest
from datetime import datetime, timedelta, timezone

from tools.intake_metrics import (
    compute_adherence_rate,
    compute_missed_streaks,
    compute_timing_variance,
    compute_intake_consistency,
    compute_observation_frequencies,
    compute_intake_metrics_bundle,
    each_day_inclusive,
    to_date_string,
    tokenize_observation,
    canonical_slot_datetime,
)


WINDOW_START = "2024-01-01"
WINDOW_END_10 = "2024-01-10"
WINDOW_END_14 = "2024-01-14"


def day(n: int) -> str:
    """ISO date n days after 2024-01-01"""
    return (datetime(2024, 1, 1) + timedelta(days=n)).date().isoformat()


# ==================== DATE HELPERS ====================

class TestDateHelpers:
    """Tests for day iteration and date normalization"""

    @pytest.mark.unit
    def test_each_day_inclusive_includes_both_ends(self):
        days = each_day_inclusive("2024-02-27", "2024-03-01")
        assert days == ["2024-02-27", "2024-02-28", "2024-02-29", "2024-03-01"]

    @pytest.mark.unit
    def test_each_day_inclusive_empty_when_start_after_end(self):
        assert each_day_inclusive("2024-01-05", "2024-01-04") == []

    @pytest.mark.unit
    def test_to_date_string_converts_aware_datetime_to_utc(self):
        value = datetime(2024, 1, 2, 0, 30, tzinfo=timezone(timedelta(hours=2)))
        assert to_date_string(value) == "2024-01-01"

    @pytest.mark.unit
    def test_canonical_slot_hours(self):
        assert canonical_slot_datetime("2024-01-01", "MORNING").hour == 9
        assert canonical_slot_datetime("2024-01-01", "AFTERNOON").hour == 13
        assert canonical_slot_datetime("2024-01-01", "EVENING").hour == 18
        assert canonical_slot_datetime("2024-01-01", "NIGHT").hour == 22


# ==================== ADHERENCE RATE ====================

class TestAdherenceRate:
    """Tests for taken / expected"""

    @pytest.mark.unit
    def test_rate_over_full_window(self, make_schedule, make_log):
        schedules = [make_schedule()]
        logs = [make_log(day(i)) for i in range(7)]

        metric = compute_adherence_rate(1, logs, schedules, WINDOW_START, WINDOW_END_10)

        assert metric.expected_count == 10
        assert metric.taken_count == 7
        assert metric.adherence_rate == pytest.approx(0.7)
        assert metric.time_window.days == 10

    @pytest.mark.unit
    def test_schedule_counts_from_creation_day(self, make_schedule):
        """A schedule created mid-morning on day 5 is expected on days 5..10"""
        schedules = [make_schedule(created_at=datetime(2024, 1, 5, 10, 30))]

        metric = compute_adherence_rate(1, [], schedules, WINDOW_START, WINDOW_END_10)

        assert metric.expected_count == 6

    @pytest.mark.unit
    def test_zero_expected_gives_zero_rate(self, make_schedule, make_log):
        schedules = [make_schedule(created_at=datetime(2024, 2, 1))]

        metric = compute_adherence_rate(1, [make_log(day(0))], schedules, WINDOW_START, WINDOW_END_10)

        assert metric.expected_count == 0
        assert metric.adherence_rate == 0

    @pytest.mark.unit
    def test_ignores_missed_out_of_window_and_other_medications(self, make_schedule, make_log):
        schedules = [make_schedule()]
        logs = [
            make_log(day(0)),
            make_log(day(1), status="MISSED"),
            make_log("2023-12-31"),
            make_log(day(2), medication_id=2),
        ]

        metric = compute_adherence_rate(1, logs, schedules, WINDOW_START, WINDOW_END_10)

        assert metric.taken_count == 1

    @pytest.mark.unit
    def test_two_schedules_double_expected(self, make_schedule):
        schedules = [make_schedule(1), make_schedule(2, time_slot="EVENING")]

        metric = compute_adherence_rate(1, [], schedules, WINDOW_START, WINDOW_END_10)

        assert metric.expected_count == 20


# ==================== MISSED STREAKS ====================

class TestMissedStreaks:
    """Tests for explicit missed-dose streaks"""

    @pytest.mark.unit
    def test_three_day_streak_mid_window(self, make_schedule, make_log):
        logs = [
            make_log(day(i), status="MISSED" if i in (3, 4, 5) else "TAKEN")
            for i in range(14)
        ]

        metric = compute_missed_streaks(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_14)
        streak = metric.per_schedule[0]

        assert streak.longest_missed_streak == 3
        assert streak.current_missed_streak == 0

    @pytest.mark.unit
    def test_day_without_log_breaks_streak(self, make_schedule, make_log):
        logs = [make_log(day(0), status="MISSED"), make_log(day(2), status="MISSED")]

        metric = compute_missed_streaks(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert metric.per_schedule[0].longest_missed_streak == 1

    @pytest.mark.unit
    def test_current_streak_runs_to_window_end(self, make_schedule, make_log):
        logs = [make_log(day(8), status="MISSED"), make_log(day(9), status="MISSED")]

        metric = compute_missed_streaks(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert metric.per_schedule[0].current_missed_streak == 2

    @pytest.mark.unit
    def test_no_logs_is_not_missed(self, make_schedule):
        metric = compute_missed_streaks(1, [], [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert metric.per_schedule[0].longest_missed_streak == 0
        assert metric.per_schedule[0].current_missed_streak == 0

    @pytest.mark.unit
    def test_streaks_are_per_schedule(self, make_schedule, make_log):
        logs = [make_log(day(0), status="MISSED", schedule_id=2)]
        schedules = [make_schedule(1), make_schedule(2)]

        metric = compute_missed_streaks(1, logs, schedules, WINDOW_START, WINDOW_END_10)

        assert [s.longest_missed_streak for s in metric.per_schedule] == [0, 1]


# ==================== TIMING VARIANCE ====================

class TestTimingVariance:
    """Tests for deviation from canonical slot times"""

    @pytest.mark.unit
    def test_average_absolute_minutes(self, make_schedule, make_log):
        logs = [
            make_log(day(0), actual_time=datetime(2024, 1, 1, 9, 30)),
            make_log(day(1), actual_time=datetime(2024, 1, 2, 8, 50)),
        ]

        metric = compute_timing_variance(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)
        timing = metric.per_schedule[0]

        assert timing.samples == 2
        assert timing.avg_abs_minutes == pytest.approx(20.0)

    @pytest.mark.unit
    def test_no_samples_gives_none(self, make_schedule, make_log):
        logs = [
            make_log(day(0)),
            make_log(day(1), status="MISSED"),
        ]

        metric = compute_timing_variance(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert metric.per_schedule[0].samples == 0
        assert metric.per_schedule[0].avg_abs_minutes is None

    @pytest.mark.unit
    def test_aware_actual_time_compared_in_utc(self, make_schedule, make_log):
        actual = datetime(2024, 1, 1, 20, 0, tzinfo=timezone(timedelta(hours=2)))
        logs = [make_log(day(0), actual_time=actual)]

        metric = compute_timing_variance(
            1, logs, [make_schedule(time_slot="EVENING")], WINDOW_START, WINDOW_END_10
        )

        assert metric.per_schedule[0].avg_abs_minutes == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("actual_time, expected", [
        (datetime(2024, 1, 1, 8, 57, 30), 3),
        (datetime(2024, 1, 1, 9, 2, 30), 2),
    ])
    def test_half_minutes_round_half_up(self, make_schedule, make_log, actual_time, expected):
        logs = [make_log(day(0), actual_time=actual_time)]

        metric = compute_timing_variance(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert metric.per_schedule[0].avg_abs_minutes == expected



# ==================== CONSISTENCY ====================

class TestIntakeConsistency:
    """Tests for daily indicators and ratio variance"""

    @pytest.mark.unit
    def test_daily_indicators_and_variance(self, make_schedule, make_log):
        logs = [
            make_log(day(0)),
            make_log(day(1), status="MISSED"),
            make_log(day(3)),
        ]

        metric = compute_intake_consistency(1, logs, [make_schedule()], WINDOW_START, day(3))
        consistency = metric.per_schedule[0]

        assert consistency.daily_taken_counts == [1, 0, 0, 1]
        assert consistency.daily_missed_counts == [0, 1, 0, 0]
        assert consistency.variance_taken_ratio == pytest.approx(0.25)

    @pytest.mark.unit
    def test_perfect_intake_has_zero_variance(self, make_schedule, make_log):
        logs = [make_log(day(i)) for i in range(10)]

        metric = compute_intake_consistency(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert metric.per_schedule[0].variance_taken_ratio == 0

    @pytest.mark.unit
    def test_empty_window_variance_is_none(self, make_schedule):
        metric = compute_intake_consistency(1, [], [make_schedule()], "2024-01-05", "2024-01-04")

        assert metric.per_schedule[0].variance_taken_ratio is None


# ==================== OBSERVATIONS ====================

class TestObservationFrequencies:
    """Tests for keyword counting"""

    @pytest.mark.unit
    def test_tokenize_lowercases_and_drops_short_tokens(self):
        assert tokenize_observation("Dizziness, mild-ish; ok") == ["dizziness", "mild", "ish"]
        assert tokenize_observation(None) == []

    @pytest.mark.unit
    def test_counts_in_window_only(self, make_log):
        logs = [
            make_log(day(0), observation="Dizziness, mild dizziness!"),
            make_log(day(1), observation="felt tired"),
            make_log("2023-12-31", observation="dizziness"),
            make_log(day(2), observation="dizziness", medication_id=2),
        ]

        metric = compute_observation_frequencies(1, logs, WINDOW_START, WINDOW_END_10)

        assert metric.frequencies == {"dizziness": 2, "mild": 1, "felt": 1, "tired": 1}
        assert metric.top_keywords(1) == [("dizziness", 2)]


# ==================== BUNDLE ====================

class TestMetricsBundle:
    """Tests for the combined metrics view"""

    @pytest.mark.unit
    def test_bundle_is_deterministic(self, make_schedule, make_log):
        schedules = [make_schedule(1), make_schedule(2, time_slot="NIGHT")]
        logs = [
            make_log(day(i), schedule_id=1 + i % 2, actual_time=datetime(2024, 1, 1 + i, 9, 5),
                     observation="sleepy" if i % 3 == 0 else None)
            for i in range(10)
        ]

        first = compute_intake_metrics_bundle(1, logs, schedules, WINDOW_START, WINDOW_END_10)
        second = compute_intake_metrics_bundle(1, logs, schedules, WINDOW_START, WINDOW_END_10)

        assert first.to_dict() == second.to_dict()

    @pytest.mark.unit
    def test_bundle_counts(self, make_schedule, make_log):
        logs = [make_log(day(0)), make_log(day(1), status="MISSED"), make_log("2023-12-30")]

        bundle = compute_intake_metrics_bundle(1, logs, [make_schedule()], WINDOW_START, WINDOW_END_10)

        assert bundle.logs_in_window == 2
        assert bundle.schedule_count == 1
        assert bundle.time_window.to_dict() == {"start": WINDOW_START, "end": WINDOW_END_10, "days": 10}
