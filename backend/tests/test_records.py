"""Tests for personal-record detection and trends."""
from datetime import date

import pytest

from trainlog.models.progress import (
    ExercisePRSet,
    ExerciseSession,
    ExerciseSet,
    PersonalRecord,
    RecordType,
    TrendDirection,
    TrendMetric,
)
from trainlog.services.analytics.records import (
    ExerciseRecordAnalyzer,
    best_set,
    calculate_1rm,
    calculate_volume,
    format_record,
    new_records_between,
    suggest_next_targets,
)


def session(day: str, *sets: tuple) -> ExerciseSession:
    return ExerciseSession(
        date=date.fromisoformat(day),
        sets=tuple(ExerciseSet(weight_kg=w, reps=r, is_completed=c) for w, r, c in sets),
    )


@pytest.fixture
def analyzer() -> ExerciseRecordAnalyzer:
    return ExerciseRecordAnalyzer(trend_window=3, trend_threshold=0.05)


class TestCalculations:
    def test_single_rep_1rm_is_weight(self):
        assert calculate_1rm(100, 1) == 100

    def test_ten_rep_1rm(self):
        # 100 * (1 + 10/30)
        assert calculate_1rm(100, 10) == pytest.approx(133.333, rel=1e-4)

    def test_volume_excludes_incomplete_sets(self):
        sets = [
            ExerciseSet(100, 5, True),
            ExerciseSet(100, 3, True),
            ExerciseSet(50, 10, False),
        ]
        assert calculate_volume(sets) == 800

    def test_volume_excludes_zero_weight(self):
        assert calculate_volume([ExerciseSet(0, 10, True), ExerciseSet(20, 10, True)]) == 200

    def test_best_set_prefers_weight_then_reps(self):
        sets = [ExerciseSet(100, 3, True), ExerciseSet(100, 5, True), ExerciseSet(90, 10, True)]
        assert best_set(sets) == ExerciseSet(100, 5, True)

    def test_best_set_none_without_completed(self):
        assert best_set([ExerciseSet(100, 5, False)]) is None


class TestAnalyzeAll:
    def test_volume_record_sums_completed_sets(self, analyzer, bench_history):
        records = analyzer.analyze_all({"bench": bench_history})

        volume = records["bench"].max_volume
        assert volume.value == 900  # 90x5 twice beats 100x5 + 100x3
        assert volume.achieved_date == date(2024, 1, 1)

    def test_sessions_sorted_before_use(self, analyzer, bench_history):
        records = analyzer.analyze_all({"bench": bench_history})

        weight = records["bench"].max_weight
        assert weight.value == 100
        assert weight.previous_value == 90
        assert weight.achieved_date == date(2024, 1, 8)
        assert records["bench"].last_session.date == date(2024, 1, 8)

    def test_session_without_completed_sets_is_ignored(self, analyzer):
        log = {
            "squat": [
                session("2024-01-01", (100, 5, True)),
                session("2024-01-05", (200, 5, False), (0, 5, True)),
            ]
        }
        prs = analyzer.analyze_all(log)["squat"]

        assert prs.last_session.date == date(2024, 1, 1)
        assert prs.max_weight.value == 100
        assert prs.max_weight.previous_value is None

    def test_equal_value_does_not_replace_record(self, analyzer):
        log = {"row": [session("2024-01-01", (60, 8, True)), session("2024-01-03", (60, 8, True))]}
        prs = analyzer.analyze_all(log)["row"]

        assert prs.max_weight.achieved_date == date(2024, 1, 1)
        assert prs.last_session.date == date(2024, 1, 3)

    def test_previous_value_chain_reconstructs_progression(self, analyzer):
        weights = [80, 90, 85, 100, 95, 110]
        log = {
            "press": [
                session(f"2024-02-{i + 1:02d}", (w, 5, True)) for i, w in enumerate(weights)
            ]
        }
        record = analyzer.analyze_all(log)["press"].max_weight

        assert record.value == 110
        assert record.previous_value == 100
        assert record.value >= max(weights)

    def test_first_record_has_no_previous_value(self, analyzer):
        prs = analyzer.analyze_all({"curl": [session("2024-01-01", (20, 12, True))]})["curl"]

        assert all(r.previous_value is None for r in prs.records())
        assert prs.max_reps.value == 12
        assert prs.estimated_1rm.value == pytest.approx(28.0)

    def test_malformed_exercise_does_not_abort_others(self, analyzer, bench_history):
        log = {
            "bench": bench_history,
            "squat": "not a list",
            "row": [{"date": "not a date", "sets": []}, {"sets": [{"weightKg": 50}]}],
        }
        records = analyzer.analyze_all(log)

        assert records["bench"].max_weight.value == 100
        assert records["squat"].records() == []
        assert records["row"].last_session is None

    def test_encoded_log_is_decoded(self, analyzer):
        text = '{"deadlift": [{"date": "2024-03-01", "sets": [{"weightKg": 180, "reps": 3, "isCompleted": true}]}]}'
        records = analyzer.analyze_all(text)

        assert records["deadlift"].max_weight.value == 180

    def test_undecodable_log_yields_nothing(self, analyzer):
        assert analyzer.analyze_all("{broken") == {}


class TestTrend:
    def test_single_session_is_stable(self, analyzer):
        log = {"bench": [session("2024-01-01", (100, 5, True))]}
        assert analyzer.trend("bench", log, TrendMetric.WEIGHT) == TrendDirection.STABLE

    def test_unknown_exercise_is_stable(self, analyzer):
        assert analyzer.trend("missing", {}, TrendMetric.WEIGHT) == TrendDirection.STABLE

    def test_weight_up(self, analyzer):
        log = {"bench": [session("2024-01-01", (100, 5, True)), session("2024-01-03", (110, 5, True))]}
        assert analyzer.trend("bench", log, TrendMetric.WEIGHT) == TrendDirection.UP

    def test_weight_down(self, analyzer):
        log = {"bench": [session("2024-01-01", (100, 5, True)), session("2024-01-03", (90, 5, True))]}
        assert analyzer.trend("bench", log, "weight") == TrendDirection.DOWN

    def test_small_change_is_stable(self, analyzer):
        log = {"bench": [session("2024-01-01", (100, 5, True)), session("2024-01-03", (104, 5, True))]}
        assert analyzer.trend("bench", log, TrendMetric.WEIGHT) == TrendDirection.STABLE

    def test_only_qualifying_sessions_count(self, analyzer):
        log = {
            "bench": [
                session("2024-01-01", (100, 5, True)),
                session("2024-01-03", (100, 5, False)),
            ]
        }
        assert analyzer.trend("bench", log, TrendMetric.WEIGHT) == TrendDirection.STABLE

    def test_volume_metric_uses_session_sum(self, analyzer):
        log = {
            "bench": [
                session("2024-01-01", (100, 5, True)),
                session("2024-01-03", (100, 5, True), (100, 5, True)),
            ]
        }
        assert analyzer.trend("bench", log, TrendMetric.VOLUME) == TrendDirection.UP

    def test_1rm_metric(self, analyzer):
        log = {
            "bench": [
                session("2024-01-03", (100, 1, True)),
                session("2024-01-01", (100, 10, True)),
            ]
        }
        # 133.3 on the first day, 100 on the latest
        assert analyzer.trend("bench", log, "1rm") == TrendDirection.DOWN


class TestDetectNewRecords:
    def test_matches_diff_of_full_analysis(self, analyzer):
        history = [
            session("2024-01-01", (100, 5, True)),
            session("2024-01-04", (100, 8, True)),
        ]
        latest = session("2024-01-08", (110, 6, True), (60, 4, False))

        before = analyzer.analyze_all({"bench": history})
        after = analyzer.analyze_all({"bench": history + [latest]})

        detected = analyzer.detect_new_records("bench", latest.sets, before, latest.date)

        assert detected == new_records_between(before, after, "bench")
        # 110x6 beats weight and estimated 1RM, not reps (8) or volume (800)
        assert [r.type for r in detected] == [RecordType.WEIGHT, RecordType.ONE_REP_MAX]

    def test_no_prior_records_flags_every_metric(self, analyzer):
        detected = analyzer.detect_new_records(
            "bench", [{"weightKg": 60, "reps": 10, "isCompleted": True}], {}, date(2024, 1, 1)
        )

        assert [r.type for r in detected] == list(RecordType)
        assert all(r.previous_value is None for r in detected)

    def test_accepts_single_pr_set(self, analyzer):
        prior = ExercisePRSet(
            max_weight=PersonalRecord(RecordType.WEIGHT, 100, date(2024, 1, 1)),
        )
        detected = analyzer.detect_new_records(
            "bench", [ExerciseSet(100, 5, True)], prior, date(2024, 1, 2)
        )

        assert RecordType.WEIGHT not in [r.type for r in detected]

    def test_incomplete_session_sets_nothing(self, analyzer):
        assert analyzer.detect_new_records("bench", [ExerciseSet(200, 5, False)], {}) == []

    def test_defaults_to_today(self, analyzer):
        detected = analyzer.detect_new_records("bench", [ExerciseSet(50, 5, True)], None)
        assert detected[0].achieved_date == date.today()


class TestSuggestions:
    def test_first_time(self):
        assert suggest_next_targets("bench", {}) == [
            "First time doing this exercise - establish your baseline"
        ]

    def test_targets_from_last_session(self, analyzer, bench_history):
        records = analyzer.analyze_all({"bench": bench_history})

        assert suggest_next_targets("bench", records) == [
            "Try 102.5kg (was 100kg)",
            "Try 6 reps (was 5)",
            "Beat 800kg total volume",
        ]

    def test_no_rep_target_at_twelve(self, analyzer):
        records = analyzer.analyze_all({"curl": [session("2024-01-01", (20, 12, True))]})

        suggestions = suggest_next_targets("curl", records)
        assert not any("reps" in s for s in suggestions)


class TestFormatRecord:
    def test_formats(self):
        day = date(2024, 1, 1)
        assert format_record(PersonalRecord(RecordType.WEIGHT, 100.0, day)) == "100kg"
        assert format_record(PersonalRecord(RecordType.REPS, 8.0, day)) == "8 reps"
        assert format_record(PersonalRecord(RecordType.VOLUME, 800.0, day)) == "800.0kg"
        assert format_record(PersonalRecord(RecordType.ONE_REP_MAX, 133.333, day)) == "133.3kg (est)"
